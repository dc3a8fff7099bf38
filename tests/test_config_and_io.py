import numpy as np
import pytest

from stress_acf.config import AutocorrConfig, load_config
from stress_acf.io import count_samples, iter_stress_samples, write_stress_samples
from stress_acf.synthetic import ornstein_uhlenbeck, synthetic_stress


def test_default_config():
    cfg = load_config(None)
    assert cfg.correlator.m == 2
    assert cfg.correlator.p == 16
    assert cfg.checkpoint.enabled is False
    assert cfg.correlator.sampling_interval == pytest.approx(0.001)


def test_yaml_round_trip(tmp_path):
    cfg = AutocorrConfig()
    cfg.correlator.m = 4
    cfg.correlator.p = 32
    cfg.correlator.print_every = 10
    cfg.checkpoint.enabled = True
    cfg.checkpoint.directory = str(tmp_path / "ckpt")
    cfg.system.volume = 125.0
    cfg.run_label = "melt"
    path = tmp_path / "cfg.yaml"
    cfg.save(path)

    loaded = load_config(str(path))
    assert loaded.to_dict() == cfg.to_dict()
    assert loaded.correlator.sampling_interval == pytest.approx(0.01)


def test_partial_yaml_keeps_defaults(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("correlator:\n  p: 8\nrun_label: short\n", encoding="utf-8")
    cfg = load_config(str(path))
    assert cfg.correlator.p == 8
    assert cfg.correlator.m == 2
    assert cfg.run_label == "short"
    assert cfg.output.make_plots is True


def test_clone_is_independent():
    cfg = AutocorrConfig()
    copy = cfg.clone()
    copy.correlator.p = 99
    assert cfg.correlator.p == 16


@pytest.mark.parametrize(
    "section,key,value",
    [
        ("correlator", "m", 1),
        ("correlator", "p", 0),
        ("correlator", "dt", 0.0),
        ("system", "temperature", -1.0),
        ("input", "synthetic_steps", 0),
        ("input", "chunk_rows", 0),
        ("checkpoint", "every_steps", -1),
    ],
)
def test_validate_rejects_bad_values(section, key, value):
    cfg = AutocorrConfig()
    setattr(getattr(cfg, section), key, value)
    with pytest.raises(ValueError):
        cfg.validate()


def test_synthetic_length_ignored_for_file_input():
    cfg = AutocorrConfig()
    cfg.input.path = "stress.dat"
    cfg.input.synthetic_steps = 0
    assert cfg.validate() is cfg


def test_validate_warns_on_overlapping_lags():
    cfg = AutocorrConfig()
    cfg.correlator.p = 5
    with pytest.warns(UserWarning, match="overlapping"):
        cfg.validate()


def test_stress_file_streams_in_chunks(tmp_path):
    stresses = synthetic_stress(23, 0.01, seed=2)
    path = write_stress_samples(tmp_path / "stress.dat", stresses)
    assert count_samples(path) == 23

    chunks = list(iter_stress_samples(path, chunk_rows=7))
    assert [len(c) for c in chunks] == [7, 7, 7, 2]
    np.testing.assert_allclose(np.concatenate(chunks), stresses.reshape(23, 9), rtol=1e-9)


def test_comma_separated_with_step_column(tmp_path):
    path = tmp_path / "stress.csv"
    path.write_text(
        "# step,xx,xy,xz,yx,yy,yz,zx,zy,zz\n"
        "0,1,2,3,4,5,6,7,8,9\n"
        "10,9,8,7,6,5,4,3,2,1\n",
        encoding="utf-8",
    )
    (chunk,) = list(iter_stress_samples(path, has_step_column=True))
    np.testing.assert_array_equal(chunk[0], np.arange(1.0, 10.0))
    np.testing.assert_array_equal(chunk[1], np.arange(9.0, 0.0, -1.0))


def test_missing_stress_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        next(iter_stress_samples(tmp_path / "nope.dat"))


def test_zero_length_synthetic_signal_is_empty():
    rng = np.random.default_rng(0)
    assert ornstein_uhlenbeck(0, 0.01, 0.05, 1.0, rng, size=6).shape == (0, 6)
    assert synthetic_stress(0, 0.01).shape == (0, 3, 3)
