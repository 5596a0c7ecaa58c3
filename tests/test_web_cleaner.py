from services.ingestion.WebContentCleaner import SPARSE_CONTENT_NOTICE, clean_web_content, extract_title

PROSE = "Vector databases store embeddings so that similar passages can be found again quickly."
PROSE_CJK = "向量数据库保存文本的嵌入表示，以便之后能够快速找到语义相近的段落。"


class TestExtractTitle:
    def test_title_line(self):
        assert extract_title("Title: Vector Search Basics\n\nURL Source: https://x.test") == "Vector Search Basics"

    def test_body_heading_is_not_a_title(self):
        assert extract_title("# Installation\n\nSome text") == ""

    def test_meaningless_titles(self):
        assert extract_title("Title: Home") == ""
        assert extract_title("Title: 首页") == ""
        assert extract_title("Title: ab") == ""

    def test_long_title_is_capped(self):
        assert len(extract_title("Title: " + "x" * 300)) == 100


class TestCleanWebContent:
    def test_images_and_urls_are_removed(self):
        raw = f"![diagram](https://x.test/a.png)\n\n{PROSE} Source: https://x.test/page\n\n{PROSE}"

        cleaned = clean_web_content(raw)

        assert "diagram" not in cleaned
        assert "https://" not in cleaned
        assert cleaned.startswith("Vector databases")

    def test_links_keep_their_text(self):
        raw = f"{PROSE} Read the [indexing guide](https://x.test/guide) to learn how it works in detail.\n\n{PROSE}"

        cleaned = clean_web_content(raw)

        assert "indexing guide" in cleaned
        assert "(https" not in cleaned

    def test_navigation_links_are_dropped(self):
        raw = f"{PROSE} You can [click here](https://x.test/next) to continue reading the tutorial.\n\n{PROSE}"

        assert "click here" not in clean_web_content(raw)

    def test_boilerplate_lines_are_removed(self):
        raw = "\n\n".join([
            PROSE,
            "Share this article with your friends and colleagues on every social network",
            "© 2024 Example Inc. All rights reserved. Reproduction of this page is prohibited.",
            "|||| ---- **** ==== ////",
            "OK",
            PROSE,
        ])

        cleaned = clean_web_content(raw)

        assert "Share this" not in cleaned
        assert "rights reserved" not in cleaned
        assert "||||" not in cleaned
        assert "OK" not in cleaned.split("\n")
        assert cleaned.count("Vector databases") == 2

    def test_headings_survive_short_paragraphs_do_not(self):
        raw = f"# Storage engines\n\nMenu Blog About\n\n{PROSE}\n\n{PROSE}"

        cleaned = clean_web_content(raw)

        assert cleaned.startswith("# Storage engines")
        assert "Menu Blog About" not in cleaned

    def test_cjk_prose_is_kept(self):
        raw = f"{PROSE_CJK}\n\n分享\n\n{PROSE_CJK}\n\n{PROSE_CJK}"

        cleaned = clean_web_content(raw)

        assert cleaned.count(PROSE_CJK) == 3
        assert "分享" not in cleaned

    def test_whitespace_is_collapsed(self):
        raw = f"{PROSE}   with    extra     spaces here and there.\n\n\n\n\n{PROSE}"

        cleaned = clean_web_content(raw)

        assert "  " not in cleaned
        assert "\n\n\n" not in cleaned

    def test_sparse_page_gets_notice(self):
        cleaned = clean_web_content(f"![hero](https://x.test/hero.jpg)\n\n{PROSE}")

        assert cleaned.startswith(SPARSE_CONTENT_NOTICE)
        assert cleaned.endswith(PROSE)

    def test_html_entities_are_removed(self):
        raw = f"{PROSE}&nbsp;It keeps &amp; ranks the passages by cosine similarity to the query.\n\n{PROSE}"

        assert "&nbsp;" not in clean_web_content(raw)
        assert "&amp;" not in clean_web_content(raw)
