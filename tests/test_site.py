import sys
import threading
from pathlib import Path

import pytest

from kiln.files import FileIndex, hash_file
from kiln.site import BuildFailed, JobError, Site
from kiln.worker import BuilderError, Status


def write_page(path: Path, title: str, body: str = "Body.\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f'---\n{{ "title": "{title}" }}\n---\n{body}', encoding="utf-8")
    return path


def create_source(tmp_path: Path) -> Path:
    source = tmp_path / "source"
    (source / "css").mkdir(parents=True)
    (source / "css" / "site.css").write_text("body{}", encoding="utf-8")
    (source / "style.css").write_text("p{}", encoding="utf-8")
    (source / "images").mkdir()
    (source / "images" / "logo.png").write_bytes(b"\x89PNG")
    write_page(source / "index.md", "Home")
    write_page(source / "foo.md", "Foo")
    write_page(source / "foo" / "bar.md", "Bar")
    write_page(source / "foo" / "bar" / "index.md", "Bar Index")
    return source


def make_site(tmp_path: Path, **kwargs) -> Site:
    source = create_source(tmp_path)
    index = FileIndex.build(source, tmp_path / "public")
    return Site(index, **kwargs)


def wait_in_thread(site: Site, timeout: float = 10) -> BuildFailed | None:
    failures = []

    def run():
        try:
            site.wait()
        except BuildFailed as exc:
            failures.append(exc)

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    thread.join(timeout)
    assert not thread.is_alive(), "wait() never returned"
    return failures[0] if failures else None


def simple_builder():
    def builder(index, page):
        return f"<html><body><h1>{page.title}</h1>{page.content}</body></html>"

    return builder


def test_copy_mirrors_relative_paths(tmp_path):
    site = make_site(tmp_path)
    site.copy("*.css")
    site.copy("/images/*")
    site.wait()

    output = tmp_path / "public"
    assert (output / "css" / "site.css").read_text(encoding="utf-8") == "body{}"
    assert (output / "style.css").read_text(encoding="utf-8") == "p{}"
    assert (output / "images" / "logo.png").read_bytes() == b"\x89PNG"
    assert site.dispatched == 3
    assert site.pending == 0


def test_copy_anchored_pattern(tmp_path):
    site = make_site(tmp_path)
    site.copy("/style.css")
    site.wait()
    output = tmp_path / "public"
    assert (output / "style.css").exists()
    assert not (output / "css").exists()


def test_copy_failure_reports_destination(tmp_path):
    site = make_site(tmp_path)
    blocker = tmp_path / "public" / "style.css"
    blocker.mkdir(parents=True)
    site.copy("/style.css")

    with pytest.raises(BuildFailed) as exc:
        site.wait()
    assert [error.path for error in exc.value.errors] == [blocker]


def test_generate_writes_builder_output(tmp_path):
    site = make_site(tmp_path)
    seen = []

    def builder(index):
        seen.append(index)
        return f"{len(index.files)} files"

    site.generate("meta/count.txt", builder)
    site.wait()

    target = tmp_path / "public" / "meta" / "count.txt"
    assert target.read_text(encoding="utf-8") == "7 files"
    assert seen == [site.index]


def test_generate_failure_skips_write(tmp_path):
    site = make_site(tmp_path)

    def builder(index):
        raise BuilderError("no data")

    site.generate("feed.xml", builder)
    with pytest.raises(BuildFailed) as exc:
        site.wait()

    target = tmp_path / "public" / "feed.xml"
    assert exc.value.errors == [JobError(target, "no data")]
    assert not target.exists()


def test_generate_reports_unexpected_exceptions(tmp_path):
    site = make_site(tmp_path)
    site.generate("a.txt", lambda index: {}["missing"])
    with pytest.raises(BuildFailed) as exc:
        site.wait()
    assert exc.value.errors[0].message == "KeyError: 'missing'"


@pytest.mark.parametrize(
    "path", ["../escape.txt", "/../escape.txt", "a/../../escape.txt", "/"]
)
def test_generate_rejects_paths_outside_output(tmp_path, path):
    site = make_site(tmp_path)
    calls = []
    site.generate(path, lambda index: calls.append(index) or "x")
    with pytest.raises(BuildFailed) as exc:
        site.wait()

    assert "is outside the output directory" in exc.value.errors[0].message
    assert calls == []
    assert not (tmp_path / "escape.txt").exists()


def test_job_that_raises_still_reports(tmp_path):
    site = make_site(tmp_path)

    def builder(index):
        raise SystemExit(3)

    site.generate("a.txt", builder)
    site.copy("/style.css")
    finished = wait_in_thread(site)
    assert finished.errors == [
        JobError(tmp_path / "public" / "a.txt", "the job stopped without a result")
    ]
    assert (tmp_path / "public" / "style.css").exists()


@pytest.mark.parametrize(
    ("pattern", "with_index", "without_index"),
    [
        ("/index.md", "index.html", "index.html"),
        ("/foo.md", "foo/index.html", "foo.html"),
        ("/foo/bar.md", "foo/bar/index.html", "foo/bar.html"),
        ("/foo/bar/index.md", "foo/bar/index.html", "foo/bar/index.html"),
    ],
)
def test_page_path_mapping(tmp_path, pattern, with_index, without_index):
    site = make_site(tmp_path / "indexed")
    site.page(pattern, simple_builder)
    site.wait()
    output = tmp_path / "indexed" / "public"
    assert list(output.rglob("*.html")) == [output / with_index]

    site = make_site(tmp_path / "flat")
    site.page_without_index(pattern, simple_builder)
    site.wait()
    output = tmp_path / "flat" / "public"
    assert list(output.rglob("*.html")) == [output / without_index]


def test_page_renders_every_match(tmp_path):
    site = make_site(tmp_path)
    site.page_without_index("*.md", simple_builder)
    site.wait()

    output = tmp_path / "public"
    assert "<h1>Home</h1>" in (output / "index.html").read_text(encoding="utf-8")
    assert "<h1>Foo</h1>" in (output / "foo.html").read_text(encoding="utf-8")
    assert "<h1>Bar</h1>" in (output / "foo" / "bar.html").read_text(encoding="utf-8")
    assert "<h1>Bar Index</h1>" in (output / "foo" / "bar" / "index.html").read_text(
        encoding="utf-8"
    )


def test_page_only_renders_markdown(tmp_path):
    site = make_site(tmp_path)
    site.page("/style.css", simple_builder)
    site.wait()
    assert site.dispatched == 0


def test_page_rewrites_asset_links(tmp_path):
    site = make_site(tmp_path)

    def factory():
        def builder(index, page):
            return (
                '<html><head><link rel="stylesheet" href="../style.css">'
                '<link rel="alternate" href="../style.css"></head>'
                f'<body><img src="/images/logo.png">{page.content}</body></html>'
            )

        return builder

    site.page("/foo.md", factory)
    site.wait()

    html = (tmp_path / "public" / "foo" / "index.html").read_text(encoding="utf-8")
    css_hash = hash_file(site.source / "style.css")
    png_hash = hash_file(site.source / "images" / "logo.png")
    assert f'href="../style.css?hash={css_hash}"' in html
    assert 'rel="alternate"' in html and 'href="../style.css"' in html
    assert f'src="/images/logo.png?hash={png_hash}"' in html


def test_page_failures_are_isolated_and_aggregated(tmp_path):
    source = tmp_path / "source"
    write_page(source / "good.md", "Good")
    write_page(source / "boom.md", "Boom")
    broken = source / "broken.md"
    broken.write_text("---\n{ nope\n---\nBody\n", encoding="utf-8")
    index = FileIndex.build(source, tmp_path / "public")
    calls = []

    def factory():
        def builder(index, page):
            calls.append(page.title)
            if page.title == "Boom":
                raise BuilderError("template exploded")
            return "<p>ok</p>"

        return builder

    site = Site(index, workers=3)
    site.page("*.md", factory)
    with pytest.raises(BuildFailed) as exc:
        site.wait()

    output = tmp_path / "public"
    errors = {(error.path, error.message) for error in exc.value.errors}
    assert len(exc.value.errors) == 2
    assert (output / "boom" / "index.html", "template exploded") in errors
    assert {path for path, _ in errors} == {
        output / "boom" / "index.html",
        output / "broken" / "index.html",
    }
    assert str(exc.value) == "2 jobs failed"
    assert sorted(calls) == ["Boom", "Good"]
    assert (output / "good" / "index.html").exists()
    assert not (output / "boom" / "index.html").exists()
    assert not (output / "broken" / "index.html").exists()


@pytest.mark.parametrize(
    "header",
    [
        pytest.param(
            '{ "title": "Big", "n": ' + "1" * 5000 + " }",
            marks=pytest.mark.skipif(
                not hasattr(sys, "get_int_max_str_digits"),
                reason="no integer string conversion limit",
            ),
            id="huge-integer",
        ),
        pytest.param("[" * 200000, id="deep-nesting"),
    ],
)
def test_unparsable_front_matter_fails_only_its_page(tmp_path, header):
    source = tmp_path / "source"
    write_page(source / "good.md", "Good")
    (source / "bad.md").write_text(f"---\n{header}\n---\nBody\n", encoding="utf-8")
    site = Site(FileIndex.build(source, tmp_path / "public"))

    site.page("*.md", simple_builder)
    failure = wait_in_thread(site)

    assert failure is not None
    assert [error.path for error in failure.errors] == [
        tmp_path / "public" / "bad" / "index.html"
    ]
    assert "the front matter isn't a valid JSON object" in failure.errors[0].message
    assert (tmp_path / "public" / "good" / "index.html").exists()


def test_page_builder_must_return_a_document(tmp_path):
    site = make_site(tmp_path)
    site.page("/index.md", lambda: lambda index, page: None)
    with pytest.raises(BuildFailed) as exc:
        site.wait()
    assert "expected an HTML document" in exc.value.errors[0].message


def test_builder_factory_called_per_page(tmp_path):
    site = make_site(tmp_path)
    created = []

    def factory():
        created.append(threading.get_ident())
        return simple_builder()

    site.page("*.md", factory)
    assert created == []
    site.wait()
    assert len(created) == 4
    assert threading.get_ident() not in created


def test_builder_factory_failure_is_a_job_error(tmp_path):
    site = make_site(tmp_path)

    def factory():
        raise BuilderError("no renderer")

    site.page("/index.md", factory)
    with pytest.raises(BuildFailed) as exc:
        site.wait()
    target = tmp_path / "public" / "index.html"
    assert exc.value.errors == [JobError(target, "no renderer")]


def failing_builder(index):
    raise BuilderError("bad")


def test_wait_counts_failures_with_small_channel(tmp_path):
    source = tmp_path / "source"
    source.mkdir()
    for number in range(30):
        (source / f"file{number}.txt").write_text(str(number), encoding="utf-8")
    index = FileIndex.build(source, tmp_path / "public")
    site = Site(index, workers=4, channel_capacity=2)

    site.copy("*.txt")
    for number in range(5):
        site.generate(f"bad{number}.txt", failing_builder)
    assert site.pending == 35

    with pytest.raises(BuildFailed) as exc:
        site.wait()
    assert len(exc.value.errors) == 5
    assert site.pending == 0
    assert len(list((tmp_path / "public").glob("file*.txt"))) == 30


def test_wait_without_jobs_and_twice(tmp_path):
    site = make_site(tmp_path)
    assert site.wait() is None
    assert site.wait() is None


def test_register_after_wait_fails(tmp_path):
    site = make_site(tmp_path)
    site.wait()
    with pytest.raises(RuntimeError):
        site.copy("*.css")


def test_context_manager_closes(tmp_path):
    with make_site(tmp_path) as site:
        site.copy("*.css")
    assert site.pending == 0
    assert (tmp_path / "public" / "style.css").exists()


def test_status():
    assert Status.success().ok
    failure = Status.failure(Path("out/a.html"), "broken")
    assert not failure.ok
    assert failure.path == Path("out/a.html")
    assert failure.message == "broken"
