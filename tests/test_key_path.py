import pytest

from confvault.settings.key_path import KeyPath, common_prefix_length, join_segments, split_key


def test_split_key_drops_empty_and_whitespace_segments():
    assert split_key(" net // proxy /host ") == ("net", "proxy", "host")
    assert split_key("///") == ()


def test_join_and_split_use_the_same_separator():
    segments = ("net", "timeout")
    assert split_key(join_segments(segments)) == segments


def test_key_path_equality_follows_segments():
    assert KeyPath.parse("net/timeout") == KeyPath.of("net", "timeout")
    assert KeyPath.parse("net//timeout").canonical == "net/timeout"
    assert KeyPath.of("net", "timeout") != KeyPath.of("timeout", "net")


def test_key_path_rejects_invalid_segments():
    with pytest.raises(ValueError):
        KeyPath(())
    with pytest.raises(ValueError):
        KeyPath.of("net", "")
    with pytest.raises(ValueError):
        KeyPath.of("net/proxy")
    with pytest.raises(ValueError):
        KeyPath.parse(" / ")


def test_parents_and_child():
    path = KeyPath.of("a", "b", "c")
    assert [parent.canonical for parent in path.parents()] == ["a", "a/b"]
    assert path.child("d").canonical == "a/b/c/d"
    assert path.name == "c"
    assert path.depth == 3


def test_common_prefix_length():
    assert common_prefix_length(("a", "b", "c"), ("a", "b", "d")) == 2
    assert common_prefix_length(("a",), ()) == 0


@pytest.mark.parametrize("segment", [" net", "net ", "\tnet"])
def test_key_path_rejects_padded_segments(segment):
    with pytest.raises(ValueError):
        KeyPath.of(segment, "timeout")


def test_parse_strips_padding_before_validation():
    assert KeyPath.parse(" net / timeout ") == KeyPath.of("net", "timeout")
