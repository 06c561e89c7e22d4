from normalizer import (
    StatusNormalizer,
    chapter_label_from_slug,
    normalize_host,
    split_chapter_text,
    strip_noise,
)


def test_chapter_label_from_plain_slug():
    assert chapter_label_from_slug("chapter-12") == "12"
    assert chapter_label_from_slug("chapter-12-the-duel") == "12"
    assert chapter_label_from_slug("Chapter-3.5") == "3.5"


def test_chapter_label_part_form():
    assert chapter_label_from_slug("chapter-53-part-2") == "53 part 2"
    assert chapter_label_from_slug("chapter-53-part-2-the-return") == "53 part 2"


def test_chapter_label_falls_back_to_verbatim_slug():
    assert chapter_label_from_slug("prologue") == "prologue"
    assert chapter_label_from_slug("chapter-abc") == "chapter-abc"


def test_split_colon_heading():
    assert split_chapter_text("Chapter 53: The Return") == ("53", "The Return")
    assert split_chapter_text("  Chapter   7  ") == ("7", None)


def test_split_heading_without_marker_keeps_whole_text_as_title():
    assert split_chapter_text("Side Story - The Beach") == (None, "Side Story - The Beach")
    assert split_chapter_text("") == (None, None)
    assert split_chapter_text(None) == (None, None)


def test_split_dash_heading_only_when_allowed():
    assert split_chapter_text("Chapter 12 - Fire Spirit", allow_dash=True) == ("12", "Fire Spirit")
    assert split_chapter_text("Ch. 4: Awakening", allow_dash=True) == ("4", "Awakening")
    assert split_chapter_text("Chapter 9", allow_dash=True) == ("9", None)


def test_noise_is_stripped_after_split():
    label, title = split_chapter_text("Chapter 10: Dawn Read Shadow Slave online for free")
    assert label == "10"
    assert title == "Dawn"
    assert strip_noise("read it online for free") is None


def test_normalize_host():
    assert normalize_host("WWW.NovelBin.com") == "novelbin.com"
    assert normalize_host("ranobes.top") == "ranobes.top"
    assert normalize_host("") == ""


def test_status_normalization_maps_legacy_values():
    assert StatusNormalizer.normalize_status("current") == "reading"
    assert StatusNormalizer.normalize_status("Completed") == "finished"
    assert StatusNormalizer.normalize_status("complete") == "finished"
    assert StatusNormalizer.normalize_status("onhold") == "on-hold"
    assert StatusNormalizer.normalize_status(" hold ") == "on-hold"


def test_status_normalization_is_total_and_idempotent():
    for raw in ("reading", "on-hold", "dropped", "finished", "weird", "", None, 42):
        once = StatusNormalizer.normalize_status(raw)
        assert once in ("reading", "on-hold", "dropped", "finished")
        assert StatusNormalizer.normalize_status(once) == once
    assert StatusNormalizer.normalize_status("weird") == "reading"
