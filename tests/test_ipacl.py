import ipaddress

import pytest

from accessgate.ipacl import AccessChecker, RuleSet, build, extract_address, has_rules, is_allowed


@pytest.mark.parametrize("address", ["10.0.0.1", "::1", "garbage", "", "1.2.3.4:80"])
def test_no_rules_allows_everything(address):
    checker = build([], [])
    assert not has_rules(checker)
    assert is_allowed(checker, address)


def test_missing_checker_allows_everything():
    assert is_allowed(None, "garbage")
    assert is_allowed(None, "10.0.0.1")
    assert not has_rules(None)


def test_allow_with_single_deny():
    checker = build(["10.0.0.0/8"], ["10.1.2.3"])
    assert has_rules(checker)
    assert not is_allowed(checker, "10.1.2.3")
    assert is_allowed(checker, "10.5.5.5")
    assert not is_allowed(checker, "8.8.8.8")
    assert not is_allowed(checker, "garbage")


def test_deny_only():
    checker = build([], ["192.168.0.0/16"])
    assert not is_allowed(checker, "192.168.1.1")
    assert is_allowed(checker, "1.1.1.1")


def test_deny_dominates_allow():
    checker = build(["10.0.0.0/8", "10.1.0.0/16"], ["10.1.0.0/16"])
    assert not is_allowed(checker, "10.1.200.7")
    assert is_allowed(checker, "10.2.0.1")


@pytest.mark.parametrize("address", ["", "not-an-ip", "10.0.0.1:80", "300.1.1.1"])
def test_invalid_address_denied_once_configured(address):
    checker = build([], ["192.0.2.0/24"])
    assert not is_allowed(checker, address)


def test_bare_v4_equals_slash_32():
    bare = build(["203.0.113.5"], [])
    explicit = build(["203.0.113.5/32"], [])
    assert bare.allow.rules == explicit.allow.rules
    for address in ("203.0.113.5", "203.0.113.6", "203.0.113.4"):
        assert is_allowed(bare, address) == is_allowed(explicit, address)
    assert is_allowed(bare, "203.0.113.5")
    assert not is_allowed(bare, "203.0.113.6")


def test_bare_v6_equals_slash_128():
    bare = build([], ["2001:db8::1"])
    explicit = build([], ["2001:db8::1/128"])
    assert bare.deny.rules == explicit.deny.rules
    assert bare.deny.rules == (ipaddress.ip_network("2001:db8::1/128"),)
    assert not is_allowed(bare, "2001:db8::1")
    assert is_allowed(bare, "2001:db8::2")


def test_families_never_cross_match():
    checker = build(["::/0"], [])
    assert not is_allowed(checker, "10.0.0.1")
    assert is_allowed(checker, "2001:db8::5")

    mapped = build(["192.0.2.1"], [])
    assert not is_allowed(mapped, "::ffff:192.0.2.1")


def test_entries_are_trimmed_and_empty_skipped():
    checker = build(["  10.0.0.0/8 ", "", "   ", "\t192.168.1.10\n"], [])
    assert [str(n) for n in checker.allow.rules] == ["10.0.0.0/8", "192.168.1.10/32"]
    assert checker.allow.rejected == ()


def test_unparsable_entries_are_dropped():
    checker = build(["not-a-range", "10.0.0.0/33", "10.0.0.0/8"], ["bogus"])
    assert [str(n) for n in checker.allow.rules] == ["10.0.0.0/8"]
    assert checker.allow.rejected == ("not-a-range", "10.0.0.0/33")
    assert checker.deny.rejected == ("bogus",)
    assert not checker.deny.configured
    assert is_allowed(checker, "10.9.9.9")
    assert not is_allowed(checker, "11.0.0.1")


def test_only_unparsable_entries_means_unconfigured():
    checker = build(["nope"], ["also nope"])
    assert not has_rules(checker)
    assert is_allowed(checker, "garbage")


def test_netmask_notation_rejected():
    checker = build(["10.0.0.0/255.0.0.0"], [])
    assert not checker.allow.configured
    assert checker.allow.rejected == ("10.0.0.0/255.0.0.0",)


def test_host_bits_are_masked():
    checker = build(["10.1.2.3/8"], [])
    assert checker.allow.rules == (ipaddress.ip_network("10.0.0.0/8"),)
    assert is_allowed(checker, "10.200.0.1")


def test_evaluate_reports_matching_rule():
    checker = build(["10.0.0.0/8"], ["10.1.2.3"])
    decision = checker.evaluate("10.1.2.3")
    assert not decision.allowed
    assert str(decision.rule) == "10.1.2.3/32"

    decision = checker.evaluate("10.4.4.4")
    assert decision.allowed
    assert str(decision.rule) == "10.0.0.0/8"

    decision = checker.evaluate("8.8.8.8")
    assert not decision.allowed
    assert decision.rule is None


def test_repeated_calls_are_stable():
    checker = build(["10.0.0.0/8"], ["10.1.2.3"])
    results = {is_allowed(checker, "10.1.2.3") for _ in range(50)}
    assert results == {False}


def test_checker_is_immutable():
    checker = build(["10.0.0.0/8"], [])
    with pytest.raises(AttributeError):
        checker.allow = RuleSet()


def test_classmethod_build_accepts_none():
    checker = AccessChecker.build(None, None)
    assert not checker.has_rules()


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("198.51.100.7:8443", "198.51.100.7"),
        ("198.51.100.7", "198.51.100.7"),
        ("[::1]:443", "::1"),
        ("[2001:db8::1]:8080", "2001:db8::1"),
        ("2001:db8::1", "2001:db8::1"),
        ("::1", "::1"),
        ("not-an-address", ""),
        ("", ""),
        ("[::1]", ""),
        ("[::1:443", ""),
        ("[::1]:80:90", ""),
        ("fe80::1%eth0", ""),
    ],
)
def test_extract_address(raw, expected):
    assert extract_address(raw) == expected


def test_zone_identifiers_rejected_in_rules():
    checker = build(["fe80::1%eth0", "fe80::%eth0/64"], [])
    assert not checker.allow.configured
    assert checker.allow.rejected == ("fe80::1%eth0", "fe80::%eth0/64")


def test_zone_identifiers_denied_as_addresses():
    checker = build(["fe80::/10"], [])
    assert is_allowed(checker, "fe80::1")
    assert not is_allowed(checker, "fe80::1%eth0")
    assert checker.evaluate("fe80::1%eth0").reason == "invalid address"


def test_extract_then_check():
    checker = build(["10.0.0.0/8"], [])
    assert is_allowed(checker, extract_address("10.3.3.3:51234"))
    assert not is_allowed(checker, extract_address("bogus"))
