import pytest

from foldmux.patterns import build_pattern_set

BEGIN = r"BEGIN\((.*)\)"
END = r"END\((.*)\)"


@pytest.fixture
def patterns():
    return build_pattern_set([BEGIN], [END])


@pytest.fixture
def feed(patterns):
    """Build a content tree from a list of raw lines."""
    from foldmux.content import ContentTree

    def _feed(lines):
        tree = ContentTree()
        for line in lines:
            tree.append_line(line, patterns)
        return tree

    return _feed
