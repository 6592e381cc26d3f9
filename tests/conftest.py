import pytest

from shared.context import NodeContext


@pytest.fixture
def ctx():
    """Context with an explicit, empty secret store (never reads os.environ)."""
    return NodeContext(secrets={})


@pytest.fixture
def article_markdown():
    return (
        "Intro paragraph about puppies.\n"
        "## Why Puppies Need Special Food\n"
        "Growth needs more calories.\n"
        "## Choosing The Right Kibble\n"
        "Look at protein content.\n"
        "## Feeding Schedule\n"
        "Three meals a day.\n"
        "## Common Mistakes\n"
        "Overfeeding is common.\n"
    )
