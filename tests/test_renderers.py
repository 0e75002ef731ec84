from scribe.renderers import MarkdownRenderer


def test_unknown_fence_language_is_escaped_verbatim():
    html, _ = MarkdownRenderer().render('```foolang\nprint("a & b") if x < y\n```\n')
    assert '<pre><code class="language-foolang">' in html
    assert "print(&quot;a &amp; b&quot;) if x &lt; y" in html


def test_headings_are_collected():
    html, headings = MarkdownRenderer().render("# Why Go\n\n## Speed\n")
    assert [(h.level, h.text) for h in headings] == [(1, "Why Go"), (2, "Speed")]
    assert 'id="speed"' in html
