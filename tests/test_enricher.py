import pipeline.enricher as enricher
from pipeline.enricher import assemble_enriched_markdown, enrich_content
from pipeline.schemas import EnrichContentInput, GenerateMediaTermsOutput
from pipeline.sections import split_sections
from shared.media_clients import ImageCandidate, VideoResult

IMAGE_TERMS = {"Choosing The Right Kibble": "puppy kibble bowl"}
VIDEO_TERMS = {"Common Mistakes": "puppy overfeeding tips"}


def install_fakes(monkeypatch, missing_images=()):
    async def fake_generate_media_terms(ctx, params):
        terms = IMAGE_TERMS if params.kind == "image" else VIDEO_TERMS
        return GenerateMediaTermsOutput(terms={h: terms[h] for h in params.headings if h in terms})

    async def fake_find_best_image(term, clients, verify=True):
        if term in missing_images:
            return None
        return ImageCandidate(url=f"https://img/{term.replace(' ', '-')}.jpg")

    async def fake_find_video(term, client):
        return VideoResult(
            video_id="v1",
            title="Overfeeding",
            thumbnail_url="https://thumb/v1.jpg",
            video_url="https://www.youtube.com/watch?v=v1",
        )

    monkeypatch.setattr(enricher, "generate_media_terms", fake_generate_media_terms)
    monkeypatch.setattr(enricher, "find_best_image", fake_find_best_image)
    monkeypatch.setattr(enricher, "find_video", fake_find_video)


async def test_enrich_content_inserts_media_after_headings(ctx, monkeypatch, article_markdown):
    install_fakes(monkeypatch)

    result = await enrich_content(ctx, EnrichContentInput(
        markdown=article_markdown,
        keyword="puppy food",
        include_images=True,
        include_videos=True,
    ))

    assert result.status == "success"
    assert result.media_count == 3
    assert result.markdown == (
        "Intro paragraph about puppies.\n"
        "## Why Puppies Need Special Food\n"
        "Growth needs more calories.\n"
        "## Choosing The Right Kibble\n"
        "\n\n![puppy kibble bowl](https://img/puppy-kibble-bowl.jpg)\n\n"
        "Look at protein content.\n"
        "## Feeding Schedule\n"
        "\n\n![Feeding Schedule](https://img/Feeding-Schedule.jpg)\n\n"
        "Three meals a day.\n"
        "## Common Mistakes\n"
        "\n\n[![Watch: Overfeeding](https://thumb/v1.jpg)](https://www.youtube.com/watch?v=v1)\n"
        "*Watch: Overfeeding*\n\n"
        "Overfeeding is common.\n"
    )


async def test_missing_media_leaves_section_untouched(ctx, monkeypatch, article_markdown):
    install_fakes(monkeypatch, missing_images=("Feeding Schedule",))

    result = await enrich_content(ctx, EnrichContentInput(
        markdown=article_markdown,
        include_images=True,
        include_videos=False,
    ))

    assert result.status == "success"
    assert result.media_count == 1
    assert "## Feeding Schedule\nThree meals a day.\n" in result.markdown
    assert "Watch:" not in result.markdown


async def test_media_disabled_is_skipped(ctx, monkeypatch, article_markdown):
    install_fakes(monkeypatch)

    result = await enrich_content(ctx, EnrichContentInput(
        markdown=article_markdown,
        include_images=False,
        include_videos=False,
    ))

    assert result.status == "skipped"
    assert result.markdown == article_markdown


async def test_no_eligible_sections_is_skipped(ctx, monkeypatch):
    install_fakes(monkeypatch)
    markdown = "Intro\n## Overview\ntext\n## Conclusion\nbye\n"

    result = await enrich_content(ctx, EnrichContentInput(markdown=markdown))

    assert result.status == "skipped"
    assert result.markdown == markdown


async def test_unexpected_error_returns_original(ctx, monkeypatch, article_markdown):
    install_fakes(monkeypatch)

    async def broken_find_best_image(term, clients, verify=True):
        raise KeyError("boom")

    monkeypatch.setattr(enricher, "find_best_image", broken_find_best_image)

    result = await enrich_content(ctx, EnrichContentInput(markdown=article_markdown))

    assert result.status == "error"
    assert result.markdown == article_markdown


def test_assemble_inserts_by_section_index():
    markdown = "Intro\n## Tips\none\n## Tips\ntwo\n"
    sections = split_sections(markdown)

    enriched = assemble_enriched_markdown(sections, {2: "[IMG]"})

    assert enriched == "Intro\n## Tips\none\n## Tips\n[IMG]two\n"


async def test_repeated_heading_keeps_image_and_video_apart(ctx, monkeypatch):
    install_fakes(monkeypatch)
    markdown = "Intro\n## Start\na\n## Tips\nb\n## Tips\nc\n"

    result = await enrich_content(ctx, EnrichContentInput(
        markdown=markdown,
        include_images=True,
        include_videos=True,
    ))

    assert [(s.index, s.kind) for s in result.slots] == [(2, "image"), (3, "video")]
    assert result.media_count == 2
    assert result.markdown.count("[![Watch:") == 1
    assert result.markdown == (
        "Intro\n## Start\na\n"
        "## Tips\n\n\n![Tips](https://img/Tips.jpg)\n\nb\n"
        "## Tips\n\n\n[![Watch: Overfeeding](https://thumb/v1.jpg)](https://www.youtube.com/watch?v=v1)\n"
        "*Watch: Overfeeding*\n\nc\n"
    )


async def test_blank_heading_section_searches_with_keyword(ctx, monkeypatch):
    install_fakes(monkeypatch)
    markdown = "Intro\n## First\na\n## \nb\n"

    result = await enrich_content(ctx, EnrichContentInput(markdown=markdown, keyword="puppy food"))

    assert result.media_count == 1
    assert result.markdown == "Intro\n## First\na\n## \n\n\n![puppy food](https://img/puppy-food.jpg)\n\nb\n"
