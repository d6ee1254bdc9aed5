"""Unit tests for core/framing.py."""

from specstorm.core.framing import split_frames

D = b"<D>"


class TestSplitFramesPartial:
    """Framing of a running ordinary process's buffer."""

    def test_no_delimiter_keeps_everything(self):
        """Test buffer without delimiter is held back unchanged."""
        chunks, remainder = split_frames(b"half a line", D, final=False)

        assert chunks == []
        assert remainder == b"half a line"

    def test_trailing_partial_unit_is_kept(self):
        """Test bytes after the last delimiter remain buffered."""
        chunks, remainder = split_frames(b"A<D>B", D, final=False)

        assert chunks == [b"A"]
        assert remainder == b"B"

    def test_all_units_complete(self):
        """Test delimiter-terminated buffer is emitted entirely."""
        chunks, remainder = split_frames(b"A<D>B<D>", D, final=False)

        assert chunks == [b"A", b"B"]
        assert remainder == b""

    def test_empty_units_are_dropped(self):
        """Test consecutive delimiters do not produce empty chunks."""
        chunks, remainder = split_frames(b"<D><D>A<D><D>", D, final=False)

        assert chunks == [b"A"]
        assert remainder == b""

    def test_accepts_bytearray(self):
        """Test bytearray buffers are handled and results are bytes."""
        chunks, remainder = split_frames(bytearray(b"x\n<D>y"), D, final=False)

        assert chunks == [b"x\n"]
        assert remainder == b"y"
        assert isinstance(remainder, bytes)


class TestSplitFramesFinal:
    """Framing of infrastructure or finished process output."""

    def test_final_emits_everything(self):
        """Test final flush splits on every delimiter."""
        chunks, remainder = split_frames(b"A<D>B<D>", D, final=True)

        assert chunks == [b"A", b"B"]
        assert remainder == b""

    def test_final_includes_trailing_partial(self):
        """Test final flush does not hold back an unterminated unit."""
        chunks, remainder = split_frames(b"A<D>B", D, final=True)

        assert chunks == [b"A", b"B"]
        assert remainder == b""

    def test_final_without_delimiter(self):
        """Test final flush of a buffer with no delimiter."""
        chunks, remainder = split_frames(b"plain", D, final=True)

        assert chunks == [b"plain"]
        assert remainder == b""
