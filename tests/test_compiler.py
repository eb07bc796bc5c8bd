import json

import pytest

from pydantic import ValidationError

from sail.compiler import (
    add_port_networks,
    apply_gateways,
    apply_whitelist,
    compile_spec,
    parse_links,
    parse_networks,
    parse_publish_rule,
    parse_published_ports,
    parse_volumes,
    split_command,
)
from sail.errors import InputError
from sail.models import AddOptions, PortConfig


@pytest.mark.parametrize(
    "rule,key,published,network",
    [
        ("80", "80/tcp", 80, None),
        ("8080:80", "80/tcp", 8080, None),
        ("public:80", "80/tcp", 80, "public"),
        ("public::80", "80/tcp", 80, "public"),
        ("public:8080:80", "80/tcp", 8080, "public"),
    ],
)
def test_publish_rule_shapes(rule, key, published, network):
    ports = parse_published_ports([rule])
    assert list(ports) == [key]
    assert len(ports[key]) == 1
    cfg = ports[key][0]
    assert cfg.published_port == published
    assert cfg.network == network
    assert cfg.whitelisted_cidrs == ()


def test_numeric_first_token_is_always_a_published_port():
    container, cfg = parse_publish_rule("80:8080")
    assert container == 8080
    assert cfg.published_port == 80
    assert cfg.network is None


@pytest.mark.parametrize(
    "rule",
    [
        "0",
        "65536",
        "http",
        "-1",
        "8080:0",
        "70000:80",
        "public:99999",
        "public:web",
        "public:0:80",
        "public:8080:http",
        "public::65536",
        ":80",
        ":8080:80",
        "a:b:c:d",
        "",
    ],
)
def test_invalid_publish_rules_are_rejected(rule):
    with pytest.raises(InputError):
        parse_published_ports([rule])


def test_same_container_port_on_several_networks_appends_in_order():
    ports = parse_published_ports(["public:80", "private:8080:80", "80"])
    assert list(ports) == ["80/tcp"]
    assert [(c.network, c.published_port) for c in ports["80/tcp"]] == [
        ("public", 80),
        ("private", 8080),
        (None, 80),
    ]


def test_port_key_is_normalized():
    ports = parse_published_ports(["public:8080:080"])
    assert list(ports) == ["80/tcp"]


def test_whitelist_without_port_applies_to_every_rule_in_order():
    ports = parse_published_ports(["public:80", "private:81:80", "443"])
    apply_whitelist(["10.0.0.0/8", "1.2.3.4"], ports)
    for cfgs in ports.values():
        for cfg in cfgs:
            assert cfg.whitelisted_cidrs == ("10.0.0.0/8", "1.2.3.4")


def test_whitelist_does_not_touch_rules_added_afterwards():
    ports = parse_published_ports(["80"])
    apply_whitelist(["1.2.3.4"], ports)
    ports.setdefault("443/tcp", []).append(PortConfig(published_port=443))
    assert ports["80/tcp"][0].whitelisted_cidrs == ("1.2.3.4",)
    assert ports["443/tcp"][0].whitelisted_cidrs == ()


def test_whitelist_with_port_targets_only_that_port():
    ports = parse_published_ports(["public:80", "private:80", "443"])
    apply_whitelist(["1.2.3.4/32:80"], ports)
    assert [c.whitelisted_cidrs for c in ports["80/tcp"]] == [("1.2.3.4/32",), ("1.2.3.4/32",)]
    assert ports["443/tcp"][0].whitelisted_cidrs == ()


def test_whitelist_on_unpublished_port_is_a_noop():
    ports = parse_published_ports(["443"])
    apply_whitelist(["1.2.3.4:80"], ports)
    assert ports["443/tcp"][0].whitelisted_cidrs == ()
    assert "80/tcp" not in ports


@pytest.mark.parametrize("entry", ["1.2.3.4:80:81", ":80", "1.2.3.4:http"])
def test_invalid_whitelist_entries(entry):
    with pytest.raises(InputError):
        apply_whitelist([entry], parse_published_ports(["80"]))


def test_volumes():
    vols = parse_volumes(["/data", "/logs:50"])
    assert vols["/data"].size == "10"
    assert vols["/logs"].size == "50"
    assert parse_volumes([]) is None


@pytest.mark.parametrize("vol", ["/data:50:extra", ":50", "/data:"])
def test_invalid_volumes(vol):
    with pytest.raises(InputError):
        parse_volumes([vol])


def test_links():
    assert parse_links(["db", "cache:redis"]) == {"db": "db", "cache": "redis"}
    assert parse_links(["db:primary"]) == {"db": "primary"}
    with pytest.raises(InputError):
        parse_links(["a:b:c"])


def test_gateway_adds_missing_networks_and_warns(sail_logs):
    networks = parse_networks(["private"])
    apply_gateways(["private:public", "private:predictor"], networks)
    assert networks == {
        "private": {"gateway_to": ["public", "predictor"]},
        "public": {},
        "predictor": {},
    }
    messages = [r.getMessage() for r in sail_logs.records]
    assert any("deprecated" in m for m in messages)
    assert any("Automatically adding public" in m for m in messages)


def test_gateway_auto_adds_input_network():
    networks = apply_gateways(["lan:public"], {})
    assert networks == {"lan": {"gateway_to": ["public"]}, "public": {}}


@pytest.mark.parametrize("gat", ["public", "a:b:c", ":public"])
def test_invalid_gateway(gat):
    with pytest.raises(InputError):
        apply_gateways([gat], {})


def test_split_command():
    assert split_command("") is None
    assert split_command("sh -c 'echo hello world'") == ["sh", "-c", "echo hello world"]
    with pytest.raises(InputError):
        split_command("sh -c 'unterminated")


def test_compile_spec_defaults_and_wire_form():
    spec = compile_spec("devel", "redis", None, None, AddOptions())
    assert spec.service == "redis"
    wire = json.loads(spec.to_json())
    assert wire == {
        "namespace": "devel",
        "repository": "redis",
        "repository_tag": "latest",
        "container_model": "x1",
        "container_number": 1,
        "restart_policy": "no",
        "container_environment": [],
        "links": {},
        "container_network": {},
        "container_ports": {},
    }
    assert "service" not in wire
    assert spec.to_json().startswith('{\n  "namespace"')


def test_compile_spec_full():
    opts = AddOptions(
        model="x4",
        number=3,
        restart="on-failure:5",
        command="redis-server --appendonly yes",
        entrypoint="/entry.sh",
        user="redis",
        workdir="/data",
        environment=("A=1", "B=2"),
        volumes=("/data:20",),
        links=("db",),
        networks=("private",),
        gateways=("private:public",),
        publish=("public:6379:6379", "private:6379"),
        network_allow=("10.0.0.0/8:6379",),
        pool="dedicated",
    )
    wire = json.loads(compile_spec("devel", "redis", "3.0", "cache", opts).to_json())
    assert wire["repository_tag"] == "3.0"
    assert wire["container_number"] == 3
    assert wire["container_command"] == ["redis-server", "--appendonly", "yes"]
    assert wire["container_entrypoint"] == ["/entry.sh"]
    assert wire["container_user"] == "redis"
    assert wire["container_workdir"] == "/data"
    assert wire["container_environment"] == ["A=1", "B=2"]
    assert wire["volumes"] == {"/data": {"size": "20"}}
    assert wire["links"] == {"db": "db"}
    assert wire["container_network"] == {"private": {"gateway_to": ["public"]}, "public": {}}
    assert wire["container_ports"] == {
        "6379/tcp": [
            {"published_port": 6379, "network": "public", "whitelisted_cidrs": ["10.0.0.0/8"]},
            {"published_port": 6379, "network": "private", "whitelisted_cidrs": ["10.0.0.0/8"]},
        ]
    }
    assert wire["pool"] == "dedicated"


def test_tag_flag_used_when_resource_has_none():
    assert compile_spec("devel", "redis", None, None, AddOptions(tag="2.8")).repository_tag == "2.8"
    assert compile_spec("devel", "redis", "3.0", None, AddOptions(tag="2.8")).repository_tag == "3.0"


@pytest.mark.parametrize(
    "application,repository,service",
    [("", "redis", None), ("devel", "re dis", None), ("devel", "redis", "bad/name")],
)
def test_compile_spec_rejects_bad_names(application, repository, service):
    with pytest.raises(InputError):
        compile_spec(application, repository, None, service, AddOptions())


def test_compile_spec_rejects_bad_number():
    with pytest.raises(InputError):
        compile_spec("devel", "redis", None, None, AddOptions(number=0))


def test_whitelist_runs_after_ports_in_compile_spec():
    opts = AddOptions(publish=("80", "443"), network_allow=("1.2.3.4",))
    spec = compile_spec("devel", "web", None, None, opts)
    assert all(c.whitelisted_cidrs == ("1.2.3.4",) for cfgs in spec.container_ports.values() for c in cfgs)


def test_reduced_view_drops_create_only_fields():
    spec = compile_spec("devel", "redis", None, "cache", AddOptions(number=2, pool="p1", publish=("80",)))
    reduced = spec.reduced()
    assert type(reduced).__name__ == "RedeploySpec"
    assert reduced.service == "cache"
    wire = json.loads(reduced.to_json())
    assert "pool" not in wire
    assert "container_number" not in wire
    assert wire["namespace"] == "devel"
    assert wire["container_ports"] == {"80/tcp": [{"published_port": 80, "whitelisted_cidrs": []}]}
    # the original document is untouched
    assert spec.pool == "p1"
    assert spec.container_number == 2


def test_publish_network_joins_network_list(sail_logs):
    spec = compile_spec("devel", "web", None, None, AddOptions(publish=("public:80", "8080:80")))
    assert json.loads(spec.to_json())["container_network"] == {"public": {}}
    assert any("Automatically adding public" in r.getMessage() for r in sail_logs.records)


def test_publish_network_keeps_declared_relations():
    networks = {"public": {"gateway_to": ["predictor"]}}
    add_port_networks(parse_published_ports(["public:80", "lan::443"]), networks)
    assert networks == {"public": {"gateway_to": ["predictor"]}, "lan": {}}


def test_compiled_document_is_read_only():
    opts = AddOptions(
        publish=("80",),
        network_allow=("10.0.0.0/8",),
        links=("db",),
        gateways=("private:public",),
        environment=("A=1",),
    )
    spec = compile_spec("devel", "web", None, None, opts)
    before = spec.to_json()

    with pytest.raises(TypeError):
        spec.links["cache"] = "cache"
    with pytest.raises(TypeError):
        spec.container_network["private"]["gateway_to"] = ("predictor",)
    with pytest.raises(TypeError):
        spec.container_ports["443/tcp"] = ()
    with pytest.raises(AttributeError):
        spec.container_ports["80/tcp"][0].whitelisted_cidrs.append("0.0.0.0/0")
    with pytest.raises(AttributeError):
        spec.container_environment.append("B=2")
    with pytest.raises(ValidationError):
        spec.container_ports["80/tcp"][0].published_port = 1

    assert spec.to_json() == before
    assert spec.reduced().links == {"db": "db"}
