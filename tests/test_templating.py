"""Tests for template inspection and variable substitution."""

from metrics_panel.domain.templating import (
    detect_variables,
    extract_metric_name,
    extract_variables,
    substitute_variables,
    unbound_variables,
    wildcard_unbound_matchers,
)


def test_detect_variables_recognized_order():
    """Recognized names come back in fixed order regardless of position."""
    template = 'rate(ifHCInOctets{ifName="$ifName",instance="$instance"}[5m])'
    assert detect_variables(template) == ("instance", "ifName")


def test_detect_variables_ignores_unknown_and_prefixes():
    """Only whole ``$name`` tokens of recognized variables count."""
    assert detect_variables('up{job="$job"}') == ()
    assert detect_variables('up{instance="$instances"}') == ()
    assert detect_variables("up") == ()


def test_extract_variables_dedup_first_appearance():
    template = "$b + $a + $b + $_c1"
    assert extract_variables(template) == ["b", "a", "_c1"]


def test_extract_metric_name_interface_counter_wins():
    """Interface counters match before the generic selector pattern."""
    template = 'sum(node_x{a="b"}) + rate(ifOutErrors{instance="$instance"}[5m])'
    assert extract_metric_name(template) == "ifOutErrors"


def test_extract_metric_name_selector_and_none():
    assert extract_metric_name('node_load1{job="node"}') == "node_load1"
    assert extract_metric_name("up") == ""
    assert extract_metric_name("") == ""


def test_unbound_variables():
    template = 'x{instance="$instance",ifName="$ifName"}'
    assert unbound_variables(template, {"instance": "a"}) == ("ifName",)
    assert unbound_variables(template, {"instance": "a", "ifName": ""}) == ("ifName",)
    assert unbound_variables(template, {"instance": "a", "ifName": "eth0"}) == ()


def test_substitute_variables_keeps_or_wildcards_unbound():
    template = 'x{instance="$instance",job="$job"}'
    assert (
        substitute_variables(template, {"instance": "a:9100"})
        == 'x{instance="a:9100",job="$job"}'
    )
    assert (
        substitute_variables(template, {"instance": "a:9100"}, use_wildcard=True)
        == 'x{instance="a:9100",job="".+""}'
    )


def test_substitute_variables_no_bindings_is_identity():
    assert substitute_variables("up{a=\"$a\"}", {}) == "up{a=\"$a\"}"


def test_wildcard_unbound_matchers():
    template = 'rate(x{instance="$instance",ifName="$ifName"}[5m])'
    assert (
        wildcard_unbound_matchers(template)
        == 'rate(x{instance=~".+",ifName=~".+"}[5m])'
    )
    assert (
        wildcard_unbound_matchers(template, {"instance": "a", "ifName": "eth0"})
        == 'rate(x{instance="a",ifName="eth0"}[5m])'
    )
    assert wildcard_unbound_matchers("up") == "up"
