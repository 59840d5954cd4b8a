import pytest
import os
import sys
import subprocess
from unittest.mock import patch

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from sisrs.__main__ import get_args, main


class TestArgumentParsing:
    """Test command line argument parsing."""

    def test_get_args_defaults(self):
        """Test that every option falls back to its default."""
        with patch('sys.argv', ['sisrs']):
            args = get_args()

        assert args.genome_size is None
        assert args.reference is None
        assert args.kmer == 21
        assert args.processors == 1
        assert args.read_format == 'fastq'
        assert args.missing is None
        assert args.input_dir == '.'
        assert args.min_reads == 3
        assert args.threshold == 1.0
        assert args.skip_level == 0
        assert args.repeat_refine is False

    def test_get_args_short_flags(self):
        """Test parsing the single-letter flags."""
        test_args = [
            '-g', '3000000', '-r', '/path/to/ref.fa', '-k', '31', '-p', '8',
            '-f', 'fasta', '-m', '1', '-a', '/data', '-n', '5', '-t', '0.9',
            '-s', '2', '-q',
        ]

        with patch('sys.argv', ['sisrs'] + test_args):
            args = get_args()

        assert args.genome_size == 3000000
        assert args.reference == '/path/to/ref.fa'
        assert args.kmer == 31
        assert args.processors == 8
        assert args.read_format == 'fasta'
        assert args.missing == 1
        assert args.input_dir == '/data'
        assert args.min_reads == 5
        assert args.threshold == 0.9
        assert args.skip_level == 2
        assert args.repeat_refine is True

    def test_unknown_flag_exits_non_zero(self):
        with patch('sys.argv', ['sisrs', '-z']):
            with pytest.raises(SystemExit) as exc:
                get_args()
        assert exc.value.code != 0

    def test_skip_level_out_of_range(self):
        with patch('sys.argv', ['sisrs', '-s', '5']):
            with pytest.raises(SystemExit):
                get_args()

    def test_help_exits_cleanly(self):
        with patch('sys.argv', ['sisrs', '-h']):
            with pytest.raises(SystemExit) as exc:
                get_args()
        assert exc.value.code == 0


class TestMainFunction:
    """Test the main function execution."""

    @patch('sisrs.__main__.run_sisrs_pipeline')
    def test_main_execution(self, mock_pipeline, taxa_dir):
        """Test main discovers taxa and hands a resolved config to the pipeline."""
        with patch('sys.argv', ['sisrs', '-a', taxa_dir, '-p', '2']):
            main()

        mock_pipeline.assert_called_once()
        config, taxa = mock_pipeline.call_args[0]
        assert len(taxa) == 4
        assert config.missing == 2
        assert config.processors == 2
        assert config.input_dir == os.path.abspath(taxa_dir)

    @patch('sisrs.__main__.run_sisrs_pipeline')
    def test_main_unpaired_reads(self, mock_pipeline, taxa_dir):
        """Test an R1 without its R2 mate stops before the pipeline."""
        os.remove(os.path.join(taxa_dir, 'taxonB', 'reads_R2.fastq'))

        with patch('sys.argv', ['sisrs', '-a', taxa_dir]):
            with pytest.raises(SystemExit) as exc:
                main()

        assert exc.value.code == 1
        mock_pipeline.assert_not_called()

    @patch('sisrs.__main__.run_sisrs_pipeline')
    def test_main_invalid_threshold(self, mock_pipeline, taxa_dir):
        with patch('sys.argv', ['sisrs', '-a', taxa_dir, '-t', '1.5']):
            with pytest.raises(SystemExit) as exc:
                main()

        assert exc.value.code == 1
        mock_pipeline.assert_not_called()

    @patch('subprocess.run')
    @patch('shutil.which')
    def test_main_missing_tools(self, mock_which, mock_run, taxa_dir, capsys):
        """Test a missing external tool aborts before any stage runs."""
        mock_which.return_value = None

        with patch('sys.argv', ['sisrs', '-a', taxa_dir]):
            with pytest.raises(SystemExit) as exc:
                main()

        assert exc.value.code == 1
        assert 'velveth' in capsys.readouterr().err
        mock_run.assert_not_called()
        assert not os.path.exists(os.path.join(taxa_dir, 'velvetoutput'))

    @patch('sisrs.__main__.run_sisrs_pipeline')
    def test_main_tool_failure(self, mock_pipeline, taxa_dir):
        mock_pipeline.side_effect = subprocess.CalledProcessError(1, 'velvetg')

        with patch('sys.argv', ['sisrs', '-a', taxa_dir]):
            with pytest.raises(SystemExit) as exc:
                main()

        assert exc.value.code == 1

    @pytest.mark.parametrize('error', [
        ValueError('Read pairs differ in length'),
        PermissionError('Permission denied: velvetoutput'),
        OSError('No space left on device'),
    ])
    @patch('sisrs.__main__.run_sisrs_pipeline')
    def test_main_pipeline_errors_exit_one(self, mock_pipeline, error, taxa_dir, capsys):
        mock_pipeline.side_effect = error

        with patch('sys.argv', ['sisrs', '-a', taxa_dir]):
            with pytest.raises(SystemExit) as exc:
                main()

        assert exc.value.code == 1
        assert capsys.readouterr().err == f'sisrs: {error}\n'
