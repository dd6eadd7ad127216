# tests/test_data_loaders.py
import os
import sys
import tempfile
import pytest
import yaml

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from data_loaders import (
    return_default_config,
    _resolve,
    _deep_merge,
    _load_config,
    settings_from_config,
    iter_source_rows,
    split_rows,
    PipelineSettings,
    SourceExhaustionFailure,
)
from helpers import _clean_field


class TestReturnDefaultConfig:
    """Test return_default_config function"""

    def test_returns_dict(self):
        """Test that function returns a dictionary"""
        config = return_default_config()
        assert isinstance(config, dict)

    def test_has_required_keys(self):
        """Test that all top-level blocks are present"""
        config = return_default_config()
        required_keys = ['paths', 'input', 'years', 'fields', 'cohort',
                         'diagnostics', 'output']
        for key in required_keys:
            assert key in config

    def test_reference_years(self):
        """Test default reference years 2016 -> 2021"""
        years = return_default_config()['years']
        assert years['before'] == 2016
        assert years['after'] == 2021

    def test_field_positions(self):
        """Test default year/region/cohort field positions"""
        fields = return_default_config()['fields']
        assert fields == {'year_index': 0, 'region_index': 1, 'cohort_index': 3}

    def test_input_block(self):
        """Test default delimiter, encoding and chunk size"""
        assert return_default_config()['input'] == {
            'delimiter': ',', 'encoding': 'utf-8', 'chunksize': 10000,
        }

    def test_returns_fresh_copy(self):
        """Test that mutating one result does not leak into the next"""
        a = return_default_config()
        a['years']['before'] = 1999
        assert return_default_config()['years']['before'] == 2016


class TestResolve:
    """Test _resolve function"""

    def test_resolves_relative_path(self):
        """Test resolving relative path"""
        result = _resolve("/home/user/project", "./data")
        assert os.path.isabs(result)
        assert result.endswith("data")

    def test_handles_absolute_path(self):
        """Test that absolute paths are kept"""
        result = _resolve("/home/user/project", "/var/data")
        assert result == os.path.abspath("/var/data")


class TestDeepMerge:
    """Test _deep_merge function"""

    def test_simple_merge(self):
        """Test merging flat dictionaries"""
        dst = {'a': 1, 'b': 2}
        _deep_merge(dst, {'b': 3, 'c': 4})
        assert dst == {'a': 1, 'b': 3, 'c': 4}

    def test_nested_merge(self):
        """Test merging nested dictionaries"""
        dst = {'a': {'x': 1, 'y': 2}, 'b': 3}
        _deep_merge(dst, {'a': {'y': 3, 'z': 4}})
        assert dst == {'a': {'x': 1, 'y': 3, 'z': 4}, 'b': 3}

    def test_overwrites_non_dict_values(self):
        """Test that non-dict values are overwritten"""
        dst = {'a': 1}
        _deep_merge(dst, {'a': {'b': 2}})
        assert dst == {'a': {'b': 2}}


class TestLoadConfig:
    """Test _load_config function"""

    def test_loads_default_when_no_file(self, capsys):
        """Test loading defaults when config file doesn't exist"""
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg, paths = _load_config(tmpdir, os.path.join(tmpdir, "nonexistent.yaml"))
            assert cfg['years']['before'] == 2016
            assert set(paths) == {'input_csv', 'results_dir'}
        assert "[config] No config file" in capsys.readouterr().out

    def test_merges_yaml_with_defaults(self):
        """Test that a partial YAML file is merged over defaults"""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = os.path.join(tmpdir, "config.yaml")
            with open(config_path, 'w') as f:
                yaml.dump({'years': {'after': 2020}}, f)

            cfg, _ = _load_config(tmpdir, config_path)

            assert cfg['years']['after'] == 2020
            assert cfg['years']['before'] == 2016

    def test_empty_yaml_uses_defaults(self):
        """Test that an empty YAML file leaves defaults untouched"""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = os.path.join(tmpdir, "config.yaml")
            open(config_path, 'w').close()
            cfg, _ = _load_config(tmpdir, config_path)
            assert cfg == return_default_config()

    def test_returns_absolute_paths(self):
        """Test that all returned paths are absolute"""
        with tempfile.TemporaryDirectory() as tmpdir:
            _, paths = _load_config(tmpdir, os.path.join(tmpdir, "config.yaml"))
            for key, path in paths.items():
                assert os.path.isabs(path), f"{key} path is not absolute"
                assert path.startswith(os.path.abspath(tmpdir))


class TestSettingsFromConfig:
    """Test settings_from_config"""

    def test_defaults(self):
        """Test settings built from the default config"""
        s = settings_from_config(return_default_config())
        assert s == PipelineSettings(2016, 2021, 0, 1, 3, ",")

    def test_overrides(self):
        """Test that years, fields and delimiter are taken from config"""
        cfg = return_default_config()
        cfg['years'] = {'before': '2010', 'after': 2015}
        cfg['fields']['cohort_index'] = 2
        cfg['input']['delimiter'] = ';'
        s = settings_from_config(cfg)
        assert s.before_year == 2010
        assert s.after_year == 2015
        assert s.cohort_index == 2
        assert s.delimiter == ';'

    def test_equal_years_rejected(self):
        """Test that identical reference years are rejected"""
        cfg = return_default_config()
        cfg['years']['after'] = 2016
        with pytest.raises(ValueError, match="must differ"):
            settings_from_config(cfg)

    def test_negative_index_rejected(self):
        """Test that negative field positions are rejected"""
        cfg = return_default_config()
        cfg['fields']['region_index'] = -1
        with pytest.raises(ValueError, match="region_index"):
            settings_from_config(cfg)

    def test_multichar_delimiter_rejected(self):
        """Test that a delimiter longer than one character is rejected"""
        cfg = return_default_config()
        cfg['input']['delimiter'] = '::'
        with pytest.raises(ValueError, match="single character"):
            settings_from_config(cfg)

    def test_missing_year_key(self):
        """Test that a missing reference year raises KeyError"""
        with pytest.raises(KeyError):
            settings_from_config({'years': {'before': 2016}})


class TestPipelineSettings:
    """Test PipelineSettings"""

    def test_columns_default(self):
        """Default positions read fields 0, 1 and 3"""
        assert PipelineSettings(2016, 2021).columns == [0, 1, 3]

    def test_columns_sorted(self):
        """Positions come back in file order whatever the field roles"""
        s = PipelineSettings(2016, 2021, year_index=2, region_index=0, cohort_index=1)
        assert s.columns == [0, 1, 2]


def _write(tmpdir, content, mode='w'):
    path = os.path.join(tmpdir, "pop.csv")
    if mode == 'wb':
        with open(path, 'wb') as f:
            f.write(content)
    else:
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)
    return path


class TestIterSourceRows:
    """Test iter_source_rows"""

    def test_yields_positional_rows(self):
        """Each line becomes a row with None at unread positions"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(tmpdir, "2016,A,x,1\n2021,A,x,2\n")
            rows = list(iter_source_rows(path, [0, 1, 3]))
        assert rows == [["2016", "A", None, "1"], ["2021", "A", None, "2"]]

    def test_is_lazy(self):
        """Rows are produced chunk by chunk"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(tmpdir, "2016,A,x,1\n2021,A,x,2\n2016,B,x,3\n")
            it = iter_source_rows(path, [0, 1, 3], chunksize=1)
            assert next(it) == ["2016", "A", None, "1"]
            assert len(list(it)) == 2

    def test_extra_fields_ignored(self):
        """Fields beyond the used positions do not break the reader"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(tmpdir, "2016,A,x,1,extra,more\n2021,A,x,2\n")
            rows = list(iter_source_rows(path, [0, 1, 3]))
        assert rows == [["2016", "A", None, "1"], ["2021", "A", None, "2"]]

    def test_quoted_field_with_delimiter(self):
        """A quoted region containing the delimiter stays one field"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(tmpdir, '2016,"Region, X",x,100\n2021,"Region, X",x,120\n')
            rows = list(iter_source_rows(path, [0, 1, 3]))
        assert rows == [
            ["2016", "Region, X", None, "100"],
            ["2021", "Region, X", None, "120"],
        ]

    def test_quotes_removed(self):
        """Quoted and unquoted spellings of a key read the same"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(tmpdir, '2016,"Tokyo",x,100\n2021,Tokyo,x,120\n')
            rows = list(iter_source_rows(path, [0, 1, 3]))
        assert [r[1] for r in rows] == ["Tokyo", "Tokyo"]

    def test_blank_lines_dropped(self):
        """Empty lines produce no rows"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(tmpdir, "2016,A,x,1\n\n2021,A,x,2\n")
            rows = list(iter_source_rows(path, [0, 1, 3]))
        assert len(rows) == 2

    def test_empty_file(self):
        """An empty file yields nothing"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(tmpdir, "")
            assert list(iter_source_rows(path, [0, 1, 3])) == []

    def test_delimiter(self):
        """A non-comma delimiter is honoured"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(tmpdir, "2016;A;x;1\n")
            rows = list(iter_source_rows(path, [0, 1, 3], ";"))
        assert rows == [["2016", "A", None, "1"]]

    def test_missing_file_raises_immediately(self):
        """A missing file fails before iteration starts"""
        with pytest.raises(FileNotFoundError):
            iter_source_rows("/nonexistent/dir/pop.csv", [0, 1, 3])

    def test_decode_error_is_source_failure(self):
        """Undecodable bytes abort the source"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(tmpdir, b"2016,A,x,1\n2021,\xff\xfe,x,2\n", mode='wb')
            with pytest.raises(SourceExhaustionFailure, match="Failed to read"):
                list(iter_source_rows(path, [0, 1, 3], encoding='utf-8'))

    def test_source_failure_is_runtime_error(self):
        """SourceExhaustionFailure is a RuntimeError"""
        assert issubclass(SourceExhaustionFailure, RuntimeError)


class TestSplitRows:
    """Test split_rows"""

    def test_splits_each_line(self):
        """Each text line becomes one row"""
        rows = list(split_rows(["2016,A,x,1\n", "2021,A,x,2"], [0, 1, 2, 3]))
        assert rows == [["2016", "A", "x", "1"], ["2021", "A", "x", "2"]]

    def test_unread_positions_are_none(self):
        """Positions outside columns are None"""
        assert list(split_rows(["2016,A,x,1"], [0, 1, 3])) == [["2016", "A", None, "1"]]

    def test_delimiter(self):
        """A non-comma delimiter is honoured"""
        rows = list(split_rows(["2016;A;x;1"], [0, 1, 2, 3], ";"))
        assert rows == [["2016", "A", "x", "1"]]

    def test_quoted_field_with_delimiter(self):
        """A quoted field containing the delimiter is not split"""
        rows = list(split_rows(['2016,"Region, X",x,100'], [0, 1, 3]))
        assert rows == [["2016", "Region, X", None, "100"]]

    def test_short_row_padded(self):
        """Rows missing trailing fields are padded with missing values"""
        rows = list(split_rows(["2016,A,x,1", "2021,A"], [0, 1, 3]))
        assert rows[0] == ["2016", "A", None, "1"]
        assert rows[1][:2] == ["2021", "A"]
        assert _clean_field(rows[1][3]) == ""

    def test_blank_lines_dropped(self):
        """Empty lines produce no rows"""
        assert len(list(split_rows(["2016,A,x,1", "", "2021,A,x,2"], [0, 1, 3]))) == 2

    def test_is_lazy(self):
        """With chunksize=1 a row is yielded before the next line is pulled"""
        def lines():
            yield "2016,A,x,1"
            raise AssertionError("should not be reached")
        it = split_rows(lines(), [0, 1, 2, 3], chunksize=1)
        assert next(it) == ["2016", "A", "x", "1"]

    def test_line_source_error_propagates(self):
        """Errors from the line iterable are not rewrapped"""
        def lines():
            yield "2016,A,x,1"
            raise OSError("disk gone")
        with pytest.raises(OSError, match="disk gone"):
            list(split_rows(lines(), [0, 1, 3]))
