from pathlib import Path

import pytest
from tqdm import tqdm

from varobs import aggregate
from varobs.aggregate import merge_file, rms_mapq
from varobs.errors import IncompatibleMerge
from varobs.models import Observation, SiteAllele
from varobs.records import write_records


class RecordingBar(tqdm):
    bars: list = []

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.closed = False
        RecordingBar.bars.append(self)

    def close(self):
        self.closed = True
        super().close()


def test_merge_file_closes_progress_bar_on_failure(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(aggregate, "tqdm", RecordingBar)
    monkeypatch.setattr(RecordingBar, "bars", [])
    key = SiteAllele("chr1", 10, "A")
    obs = Observation(1, 0, 400.0, [-2.0, -0.1], [-0.1, -2.0], 1, 0)
    path = tmp_path / "mixed.jsonl"
    write_records(path, [(key, obs), (key, obs.duplicate(set_ref=False))])

    with pytest.raises(IncompatibleMerge):
        merge_file(input_path=path, outdir=tmp_path / "out", progress=True)
    assert len(RecordingBar.bars) == 1
    assert RecordingBar.bars[0].closed
    assert not (tmp_path / "out" / "summary.json").exists()


def test_merge_file_summary(tmp_path: Path):
    key = SiteAllele("chr2", 5, "T")
    obs = Observation(1, 1, 400.0, [-2.0, -0.1], [-0.1, -2.0], 1, 1, 2)
    path = tmp_path / "obs.jsonl"
    write_records(path, [(key, obs), (key, obs)])

    summary, merged = merge_file(input_path=path, outdir=tmp_path / "out", progress=False)
    assert summary["counts"]["records_total"] == 2
    assert summary["counts"]["site_alleles"] == 1
    assert merged[key].total_coverage == 4
    assert rms_mapq(merged[key]) == pytest.approx(20.0)
