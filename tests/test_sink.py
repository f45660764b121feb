"""Tests for destinations and the dual-destination writer."""

import stat

import pytest
from unittest import mock

from fabrica.exceptions import SinkError
from fabrica.sink import FILE_MODE, DualSink, LocalDestination, WriteResult


class TestLocalDestination:
    """Tests for LocalDestination."""

    def test_write_creates_parents(self, tmp_path):
        dest = LocalDestination(tmp_path / "root")
        dest.write('css/main.css', b'body{}')
        assert (tmp_path / "root" / "css" / "main.css").read_bytes() == b'body{}'

    def test_write_replaces(self, tmp_path):
        dest = LocalDestination(tmp_path)
        dest.write('a.txt', b'one')
        dest.write('a.txt', b'two')
        assert dest.read('a.txt') == b'two'

    def test_write_leaves_no_temp_files(self, tmp_path):
        dest = LocalDestination(tmp_path)
        dest.write('a.txt', b'one')
        assert [p.name for p in tmp_path.iterdir()] == ['a.txt']

    def test_write_uses_umask_mode(self, tmp_path):
        """Written files get the usual umask mode, not the 0600 of a temp file."""
        dest = LocalDestination(tmp_path)
        dest.write('a.txt', b'one')
        assert stat.S_IMODE((tmp_path / "a.txt").stat().st_mode) == FILE_MODE

    def test_written_file_readable_by_others(self, tmp_path):
        with mock.patch('fabrica.sink.FILE_MODE', 0o644):
            LocalDestination(tmp_path).write('css/main.css', b'body{}')
        mode = stat.S_IMODE((tmp_path / "css" / "main.css").stat().st_mode)
        assert mode & 0o044 == 0o044

    def test_failed_write_cleans_temp_file(self, tmp_path):
        dest = LocalDestination(tmp_path)
        with mock.patch('fabrica.sink.os.replace', side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                dest.write('a.txt', b'one')
        assert list(tmp_path.iterdir()) == []

    def test_stat_missing(self, tmp_path):
        assert LocalDestination(tmp_path).stat('missing.txt') is None

    def test_stat_and_md5(self, tmp_path):
        dest = LocalDestination(tmp_path)
        dest.write('a.txt', b'hello')
        assert dest.stat('a.txt').size == 5
        assert dest.md5('a.txt') == '5d41402abc4b2a76b9719d911017c592'

    def test_ensure_dir_idempotent(self, tmp_path):
        dest = LocalDestination(tmp_path / "root")
        dest.ensure_dir('acf-json')
        dest.ensure_dir('acf-json')
        assert (tmp_path / "root" / "acf-json").is_dir()

    def test_clean_missing_root(self, tmp_path):
        """Cleaning a root that does not exist is fine."""
        LocalDestination(tmp_path / "nope").clean()

    def test_clean_removes_root(self, tmp_path):
        dest = LocalDestination(tmp_path / "root")
        dest.write('a/b.txt', b'x')
        dest.clean()
        assert not (tmp_path / "root").exists()


class TestDualSink:
    """Tests for DualSink."""

    def test_requires_destination(self):
        with pytest.raises(ValueError):
            DualSink([])

    def test_write_to_every_root(self, tmp_path):
        sink = DualSink.from_roots([tmp_path / "build", tmp_path / "live"])
        result = sink.write('js/main.js', 'var a;')
        assert result.ok
        assert len(result.written) == 2
        assert (tmp_path / "build" / "js" / "main.js").read_bytes() == b'var a;'
        assert (tmp_path / "live" / "js" / "main.js").read_bytes() == b'var a;'

    def test_staging_equals_live(self, tmp_path):
        """After a successful write both roots hold identical bytes."""
        sink = DualSink.from_roots([tmp_path / "build", tmp_path / "live"])
        content = bytes(range(256)) * 4
        assert sink.write('img/raw.bin', content).ok
        build = (tmp_path / "build" / "img" / "raw.bin").read_bytes()
        live = (tmp_path / "live" / "img" / "raw.bin").read_bytes()
        assert build == live == content

    def test_one_failure_does_not_stop_others(self, tmp_path):
        """A failing root is reported and the other root is still written."""
        broken = mock.Mock()
        broken.get_key.return_value = 'broken'
        broken.write.side_effect = PermissionError("read-only")
        good = LocalDestination(tmp_path / "live")
        sink = DualSink([broken, good])

        result = sink.write('a.txt', b'x')
        assert not result.ok
        assert result.written == [good.get_key()]
        assert result.errors[0][0] == 'broken'
        assert (tmp_path / "live" / "a.txt").read_bytes() == b'x'

    def test_raise_for_errors(self, tmp_path):
        result = WriteResult(path='a.txt', errors=[('root', OSError("boom"))])
        with pytest.raises(SinkError) as exc_info:
            result.raise_for_errors()
        assert exc_info.value.failures[0][0] == 'root'
        assert isinstance(exc_info.value, OSError)

    def test_roots(self, tmp_path):
        sink = DualSink.from_roots([tmp_path / "a", tmp_path / "b"])
        assert sink.roots == [str((tmp_path / "a").resolve()), str((tmp_path / "b").resolve())]

    def test_clean_all_roots(self, tmp_path):
        sink = DualSink.from_roots([tmp_path / "a", tmp_path / "b"])
        sink.write('x.txt', b'x')
        sink.clean()
        assert not (tmp_path / "a").exists()
        assert not (tmp_path / "b").exists()

    def test_ensure_dir(self, tmp_path):
        sink = DualSink.from_roots([tmp_path / "a", tmp_path / "b"])
        sink.ensure_dir('acf-json')
        assert (tmp_path / "a" / "acf-json").is_dir()
        assert (tmp_path / "b" / "acf-json").is_dir()
