import pipeline.job as job
from pipeline.job import process_article
from pipeline.schemas import EnrichContentOutput, InsertInternalLinksOutput, ProcessArticleInput


def install_fakes(monkeypatch, calls):
    async def fake_enrich_content(ctx, params):
        calls.append(("enrich", params.markdown))
        return EnrichContentOutput(markdown=params.markdown + "[media]", media_count=1)

    async def fake_insert_internal_links(ctx, params):
        calls.append(("link", params.markdown))
        return InsertInternalLinksOutput(
            markdown=params.markdown + "[link]",
            applied_count=1,
            applied_slugs=["dog-nutrition"],
        )

    monkeypatch.setattr(job, "enrich_content", fake_enrich_content)
    monkeypatch.setattr(job, "insert_internal_links", fake_insert_internal_links)


async def test_linking_runs_on_enriched_markdown(ctx, monkeypatch):
    calls = []
    install_fakes(monkeypatch, calls)

    result = await process_article(ctx, ProcessArticleInput(
        markdown="article",
        keyword="puppy food",
        project_id="proj-1",
        article_id="art-1",
    ))

    assert calls == [("enrich", "article"), ("link", "article[media]")]
    assert result.markdown == "article[media][link]"
    assert result.media_count == 1
    assert result.links_applied == 1
    assert result.enrichment_status == "success"
    assert result.linking_status == "success"


async def test_linking_without_project_is_skipped_with_warning(ctx, monkeypatch):
    calls = []
    install_fakes(monkeypatch, calls)

    result = await process_article(ctx, ProcessArticleInput(markdown="article"))

    assert [name for name, _ in calls] == ["enrich"]
    assert result.linking_status == "skipped"
    assert result.markdown == "article[media]"
    assert len(ctx.warnings) == 1


async def test_linking_disabled(ctx, monkeypatch):
    calls = []
    install_fakes(monkeypatch, calls)

    result = await process_article(ctx, ProcessArticleInput(
        markdown="article",
        project_id="proj-1",
        include_internal_links=False,
    ))

    assert [name for name, _ in calls] == ["enrich"]
    assert result.linking_status == "skipped"
    assert ctx.warnings == []
