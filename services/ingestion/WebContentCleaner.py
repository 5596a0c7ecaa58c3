"""Noise removal for web pages fetched as markdown through the reader backend."""

import re

_TITLE_LINE = re.compile(r"^Title:\s*(.+)$", re.MULTILINE)
_MEANINGLESS_TITLE = re.compile(r"^(首页|Home|Index|Page)$", re.IGNORECASE)

_MARKDOWN_IMAGE = re.compile(r"!\[[^\]]*\]\([^)]+\)")
_IMAGE_PLACEHOLDERS = [
    re.compile(r"\[图片:?\s*[^\]]*\]", re.IGNORECASE),
    re.compile(r"\[?Image\s+\d+\]?", re.IGNORECASE),
    re.compile(r"图片\s*\d+"),
]
_MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\(https?://[^)]+\)")
_BARE_URL = re.compile(r"https?://[^\s)]+")
_HTML_ENTITY = re.compile(r"&(?:[a-z]+|#\d+);", re.IGNORECASE)
_SPECIAL_CHAR = re.compile(r"[^a-zA-Z0-9\u4e00-\u9fa5\s\-_.,!?()（）。，！？：:；;\"'“”‘’]")
_CJK_CHAR = re.compile(r"[\u4e00-\u9fa5]")
_LATIN_WORD = re.compile(r"[a-zA-Z]+")

NAVIGATION_WORDS = ["登录", "注册", "更多", "more", "点击", "click", "查看", "view", "下载", "download", "login", "sign up"]

GARBAGE_KEYWORDS = [
    # share / social widgets
    "转载", "分享", "收藏", "点赞", "评论", "关注", "订阅", "share this", "subscribe",
    # counters
    "阅读量", "浏览量", "访问量", "字数",
    # related content
    "上一篇", "下一篇", "相关文章", "推荐阅读", "热门文章", "related posts", "read more",
    # legal
    "版权声明", "转载请注明", "all rights reserved", "cookie",
    # platform chrome
    "CSDN", "博客园", "掘金", "SegmentFault", "简书", "举报", "投诉", "APP下载", "扫码", "二维码",
    "复制代码", "运行代码", "展开代码",
]

MAX_SPECIAL_CHAR_RATIO = 0.35
MIN_LINE_CHARS = 5
MIN_PARAGRAPH_CHARS = 15
MIN_CJK_CHARS = 8
MIN_LATIN_WORDS = 6
MIN_CLEANED_LENGTH = 100
MAX_TITLE_LENGTH = 100

SPARSE_CONTENT_NOTICE = (
    "# Extracted content\n\n"
    "Only little text could be extracted; the page may consist mostly of images or media.\n\n"
)


def extract_title(content: str) -> str:
    """Return the page title from the reader's "Title:" line, "" if there is none.

    Headings inside the body are ignored, they usually name a section rather
    than the page.
    """
    match = _TITLE_LINE.search(content)
    if not match:
        return ""
    title = match.group(1).strip()
    if len(title) <= 2 or _MEANINGLESS_TITLE.match(title):
        return ""
    return title[:MAX_TITLE_LENGTH]


def _replace_link(match: re.Match) -> str:
    text = match.group(1)
    if text.startswith(("http://", "https://")):
        return ""
    if any(word in text.lower() for word in NAVIGATION_WORDS):
        return ""
    return text


def _is_garbage_line(line: str) -> bool:
    lower = line.lower()
    return any(keyword.lower() in lower for keyword in GARBAGE_KEYWORDS)


def _is_symbol_line(line: str) -> bool:
    if not line:
        return False
    return len(_SPECIAL_CHAR.findall(line)) / len(line) >= MAX_SPECIAL_CHAR_RATIO


def _is_short_line(line: str) -> bool:
    effective = len("".join(line.split()))
    return 0 < effective < MIN_LINE_CHARS


def _is_meaningful_paragraph(paragraph: str) -> bool:
    if paragraph.startswith("#"):
        return True
    if len(paragraph) < MIN_PARAGRAPH_CHARS:
        return False
    return len(_CJK_CHAR.findall(paragraph)) > MIN_CJK_CHARS or len(_LATIN_WORD.findall(paragraph)) > MIN_LATIN_WORDS


def clean_web_content(content: str) -> str:
    """Strip navigation, media and boilerplate from reader markdown.

    Images and bare URLs are removed, links keep their text (navigation links
    are dropped entirely). Lines with boilerplate keywords, mostly symbols or
    fewer than five visible characters are removed, then only headings and
    paragraphs with real prose are kept and whitespace is collapsed.

    Args:
        content (str): Raw markdown as returned by the reader.

    Returns:
        str: The cleaned text. Very short results are prefixed with a notice.
    """
    cleaned = _MARKDOWN_IMAGE.sub("", content)
    for pattern in _IMAGE_PLACEHOLDERS:
        cleaned = pattern.sub("", cleaned)
    cleaned = _MARKDOWN_LINK.sub(_replace_link, cleaned)
    cleaned = _BARE_URL.sub("", cleaned)
    cleaned = _HTML_ENTITY.sub("", cleaned)

    lines = [
        line for line in cleaned.split("\n")
        if not (_is_garbage_line(line) or _is_symbol_line(line) or _is_short_line(line))
    ]
    cleaned = "\n".join(lines)

    paragraphs = [p.strip() for p in re.split(r"\n\n+", cleaned)]
    cleaned = "\n\n".join(p for p in paragraphs if p and _is_meaningful_paragraph(p))

    cleaned = re.sub(r"[ \t]+", " ", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    cleaned = "\n".join(line.strip() for line in cleaned.split("\n")).strip()

    if len(cleaned) < MIN_CLEANED_LENGTH:
        return SPARSE_CONTENT_NOTICE + cleaned
    return cleaned
