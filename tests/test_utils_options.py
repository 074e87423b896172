import logging
import warnings

import pytest

from fastrmsds.utils.options import OptionsForwarder


def test_apply_aliases_alias_overrides_canonical_when_not_strict(caplog):
    caplog.set_level(logging.WARNING, logger="fastrmsds")
    forwarder = OptionsForwarder(aliases={"sel1": "atoms"})
    resolved = forwarder.apply_aliases({"atoms": "name CA", "sel1": "protein"})
    assert resolved["atoms"] == "protein"
    assert any("Both 'atoms' and 'sel1'" in r.getMessage() for r in caplog.records)


def test_apply_aliases_duplicate_raises_when_strict():
    forwarder = OptionsForwarder(aliases={"sel1": "atoms"}, strict=True)
    with pytest.raises(ValueError):
        forwarder.apply_aliases({"atoms": "name CA", "sel1": "protein"})


def test_apply_aliases_same_value_is_not_a_conflict():
    forwarder = OptionsForwarder(aliases={"threads": "workers"}, strict=True)
    assert forwarder.apply_aliases({"workers": 2, "threads": 2}) == {"workers": 2}


def test_apply_aliases_does_not_mutate_input():
    opts = {"threads": 4}
    resolved = OptionsForwarder(aliases={"threads": "workers"}).apply_aliases(opts)
    assert resolved == {"workers": 4}
    assert opts == {"threads": 4}


def test_filter_known_drops_unknown_with_log(caplog):
    caplog.set_level(logging.WARNING, logger="fastrmsds")
    forwarder = OptionsForwarder()
    out = forwarder.filter_known({"workers": 2, "colour": "red"}, {"workers"}, context="rmsds")
    assert out == {"workers": 2}
    assert any("Unknown options for 'rmsds'" in r.getMessage() for r in caplog.records)


def test_filter_known_can_emit_python_warning():
    forwarder = OptionsForwarder()
    with pytest.warns(UserWarning, match="colour"):
        forwarder.filter_known({"colour": "red"}, set(), context="rmsds", warn=True)


def test_filter_known_strict_raises():
    forwarder = OptionsForwarder(strict=True)
    with pytest.raises(ValueError, match="colour"):
        forwarder.filter_known({"colour": "red"}, {"workers"}, context="rmsds")


def test_filter_known_all_known_is_silent():
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        out = OptionsForwarder().filter_known({"a": 1}, {"a", "b"}, context="x", warn=True)
    assert out == {"a": 1}
