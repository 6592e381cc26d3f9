from pipeline.schemas import PlanMediaSlotsInput
from pipeline.sections import (
    assign_media_slots,
    eligible_slot_indices,
    is_excluded_heading,
    join_sections,
    plan_media_slots,
    split_sections,
)


def test_split_sections_round_trip(article_markdown):
    sections = split_sections(article_markdown)

    assert join_sections(sections) == article_markdown
    assert [s.index for s in sections] == [0, 1, 2, 3, 4]
    assert sections[0].heading is None
    assert sections[0].text == "Intro paragraph about puppies.\n"
    assert sections[2].heading == "Choosing The Right Kibble"
    assert sections[2].heading_line == "## Choosing The Right Kibble\n"


def test_split_sections_article_starting_with_heading():
    markdown = "## First\nBody one\n## Second\nBody two"
    sections = split_sections(markdown)

    assert sections[0].text == ""
    assert sections[1].heading == "First"
    assert sections[2].heading == "Second"
    assert join_sections(sections) == markdown


def test_split_ignores_other_heading_levels():
    markdown = "# Title\nIntro\n### Detail\n## Real Section\nText\n"
    sections = split_sections(markdown)

    assert len(sections) == 2
    assert sections[1].heading == "Real Section"
    assert join_sections(sections) == markdown


def test_excluded_headings_are_case_insensitive():
    assert is_excluded_heading("Conclusion")
    assert is_excluded_heading("In Summary: What We Learned")
    assert is_excluded_heading("Let's Wrap Up")
    assert is_excluded_heading("FINAL THOUGHTS")
    assert not is_excluded_heading("Feeding Schedule")


def test_assign_media_slots_images_and_video(article_markdown):
    sections = split_sections(article_markdown)

    assert assign_media_slots(sections, include_images=True, include_videos=True) == {
        2: "image",
        3: "image",
        4: "video",
    }


def test_assign_media_slots_images_only(article_markdown):
    sections = split_sections(article_markdown)

    assert assign_media_slots(sections, include_images=True, include_videos=False) == {
        2: "image",
        3: "image",
    }


def test_video_takes_last_eligible_before_images():
    markdown = "Intro\n## A\na\n## B\nb\n## C\nc\n## Conclusion\nbye\n"
    sections = split_sections(markdown)

    assert eligible_slot_indices(sections) == [2, 3]
    assert assign_media_slots(sections, True, True) == {2: "image", 3: "video"}


def test_intro_and_first_section_never_assigned():
    markdown = "Intro\n## Only Section\ntext\n"
    sections = split_sections(markdown)

    assert assign_media_slots(sections, True, True) == {}


def test_conclusion_only_article_gets_no_slots():
    markdown = "Intro\n## Getting Started\ntext\n## Final Thoughts\nbye\n"
    sections = split_sections(markdown)

    assert assign_media_slots(sections, True, True) == {}


def test_slot_caps_on_long_article():
    markdown = "Intro\n" + "".join(f"## Section {i}\nbody {i}\n" for i in range(1, 11))
    sections = split_sections(markdown)

    assignments = assign_media_slots(sections, True, True)
    kinds = list(assignments.values())

    assert kinds.count("image") == 2
    assert kinds.count("video") == 1
    assert assignments[10] == "video"
    assert 0 not in assignments and 1 not in assignments


async def test_plan_media_slots_node(ctx, article_markdown):
    result = await plan_media_slots(ctx, PlanMediaSlotsInput(
        markdown=article_markdown,
        include_images=True,
        include_videos=True,
    ))

    assert result.status == "success"
    assert result.section_count == 5
    assert [(s.index, s.kind) for s in result.slots] == [(2, "image"), (3, "image"), (4, "video")]
    assert result.slots[2].heading == "Common Mistakes"
    assert ctx.last_output["status"] == "success"


def test_blank_heading_section_stays_eligible():
    markdown = "Intro\n## First\na\n## \nb\n## Next\nc\n"
    sections = split_sections(markdown)

    assert sections[2].heading == ""
    assert eligible_slot_indices(sections) == [2, 3]
    assert assign_media_slots(sections, True, False) == {2: "image", 3: "image"}
