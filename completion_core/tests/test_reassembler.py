from completion_core.streaming.reassembler import LineReassembler


SAMPLE = (
    'data: {"completion": "Hi", "stop_reason": null}\n'
    "\n"
    ": keep-alive comment\n"
    'data: {"completion": "Hi there", "stop_reason": "stop_sequence"}\n'
    "data: [DONE]\n"
    "tail without newline"
)


def _feed_all(chunks):
    r = LineReassembler()
    lines = []
    for chunk in chunks:
        lines.extend(r.feed(chunk))
    return lines, r.pending


def test_single_chunk_splits_lines():
    lines, pending = _feed_all([SAMPLE])
    assert lines[0].startswith("data: ")
    assert lines[1] == ""
    assert lines[-1] == "data: [DONE]"
    assert len(lines) == 5
    assert pending == "tail without newline"


def test_chunk_boundary_invariance():
    expected = _feed_all([SAMPLE])

    one_byte = [c for c in SAMPLE]
    assert _feed_all(one_byte) == expected

    for cut in range(len(SAMPLE) + 1):
        assert _feed_all([SAMPLE[:cut], SAMPLE[cut:]]) == expected

    for size in (2, 3, 7, 16, 64):
        chunks = [SAMPLE[i : i + size] for i in range(0, len(SAMPLE), size)]
        assert _feed_all(chunks) == expected


def test_empty_chunk_yields_nothing():
    r = LineReassembler()
    assert list(r.feed("")) == []
    assert list(r.feed("partial")) == []
    assert list(r.feed("")) == []
    assert list(r.feed(" line\n")) == ["partial line"]
    assert r.pending == ""


def test_unconsumed_lines_stay_buffered():
    r = LineReassembler()
    gen = r.feed("a\nb\nc\n")
    assert next(gen) == "a"
    gen.close()
    assert r.pending == "b\nc\n"
    assert list(r.feed("d\n")) == ["b", "c", "d"]


def test_reset_clears_buffer():
    r = LineReassembler()
    list(r.feed("half a li"))
    r.reset()
    assert r.pending == ""
    assert list(r.feed("ne\n")) == ["ne"]
