import os
import pytest
from unittest.mock import patch

from sisrs.discovery import ReadPair, Taxon, discover_taxa
from sisrs.reads import (
    assembly_inputs,
    prepare_reads,
    shuffle_pair,
    subsample_taxon,
    target_reads_per_taxon,
)


def _headers(path, marker):
    with open(path) as f:
        return [line[1:].strip() for line in f if line.startswith(marker)]


@pytest.fixture
def two_library_taxon(temp_dir, write_reads):
    d = os.path.join(temp_dir, 'taxonA')
    os.makedirs(d)
    pairs = []
    for lib in ('lib1', 'lib2'):
        r1 = write_reads(os.path.join(d, f'{lib}_R1.fastq'), 5, f'{lib}_')
        r2 = write_reads(os.path.join(d, f'{lib}_R2.fastq'), 5, f'{lib}_')
        pairs.append(ReadPair(r1=r1, r2=r2))
    return Taxon(name='taxonA', directory=d, pairs=tuple(pairs))


class TestTargetReads:

    def test_ten_x_coverage(self):
        assert target_reads_per_taxon(1_000_000, 5) == 10_000

    @pytest.mark.parametrize('genome_size,taxa', [(1, 1), (999, 3), (3_100_000_000, 7), (12345, 4)])
    def test_formula(self, genome_size, taxa):
        assert target_reads_per_taxon(genome_size, taxa) == (10 * genome_size) // (200 * taxa)

    def test_zero_taxa(self):
        with pytest.raises(ValueError):
            target_reads_per_taxon(1000, 0)


class TestShuffle:

    def test_interleaves_mates(self, two_library_taxon):
        pair = two_library_taxon.pairs[0]
        out = shuffle_pair(pair)

        assert out.endswith('lib1_shuffled.fastq')
        headers = _headers(out, '@')
        assert len(headers) == 10
        assert headers[0] == headers[1] == 'lib1_0'
        assert headers[8] == headers[9] == 'lib1_4'

    def test_fasta(self, temp_dir, write_reads):
        r1 = write_reads(os.path.join(temp_dir, 'x_R1.fasta'), 3, read_format='fasta')
        r2 = write_reads(os.path.join(temp_dir, 'x_R2.fasta'), 3, read_format='fasta')

        out = shuffle_pair(ReadPair(r1=r1, r2=r2), 'fasta')

        assert out == os.path.join(temp_dir, 'x_shuffled.fasta')
        assert len(_headers(out, '>')) == 6

    def test_mate_count_mismatch(self, temp_dir, write_reads):
        r1 = write_reads(os.path.join(temp_dir, 'x_R1.fastq'), 3)
        r2 = write_reads(os.path.join(temp_dir, 'x_R2.fastq'), 2)
        with pytest.raises(ValueError, match='different read counts'):
            shuffle_pair(ReadPair(r1=r1, r2=r2))


class TestSubsample:

    def test_draws_requested_pairs(self, two_library_taxon):
        out = subsample_taxon(two_library_taxon, 4, seed=7)

        assert out == os.path.join(two_library_taxon.directory, 'taxonA_subsampled.fastq')
        headers = _headers(out, '@')
        assert len(headers) == 8
        assert headers[0::2] == headers[1::2]
        assert len(set(headers[0::2])) == 4

    def test_seed_is_reproducible(self, two_library_taxon):
        first = _headers(subsample_taxon(two_library_taxon, 3, seed=1), '@')
        second = _headers(subsample_taxon(two_library_taxon, 3, seed=1), '@')
        assert first == second

    def test_keeps_everything_when_short(self, two_library_taxon):
        out = subsample_taxon(two_library_taxon, 100)
        assert len(_headers(out, '@')) == 20


class TestPrepareReads:

    def test_shuffles_without_genome_size(self, taxa_dir, make_config):
        config = make_config(input_dir=taxa_dir, processors=2)
        taxa = discover_taxa(taxa_dir)

        streams = prepare_reads(config, taxa)

        assert streams == assembly_inputs(config, taxa)
        assert all(s.endswith('reads_shuffled.fastq') for s in streams)
        assert all(os.path.exists(s) for s in streams)
        assert not any(os.path.exists(t.subsampled('fastq')) for t in taxa)

    def test_subsamples_with_genome_size(self, taxa_dir, make_config):
        # 10 * 240 / (200 * 4) = 3 pairs per taxon
        config = make_config(input_dir=taxa_dir, genome_size=240, seed=3)
        taxa = discover_taxa(taxa_dir)

        streams = prepare_reads(config, taxa)

        assert streams == assembly_inputs(config, taxa)
        assert len(streams) == 4
        for s in streams:
            assert len(_headers(s, '@')) == 6
        assert not any(os.path.exists(p.shuffled) for t in taxa for p in t.pairs)
