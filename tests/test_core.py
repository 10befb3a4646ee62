import numpy as np
import pytest

from varobs.errors import IncompatibleMerge, InvalidObservation
from varobs.models import Observation, SiteAllele


def make_a() -> Observation:
    return Observation(
        allele_forward_strand=2,
        other_forward_strand=1,
        square_map_q=900.0,
        allele_log_likelihoods=[-5.0, -2.0],
        other_log_likelihoods=[-1.0, -4.0],
        allele_coverage=3,
        other_coverage=2,
        total_coverage=5,
        is_ref=True,
    )


def make_b() -> Observation:
    return Observation(
        allele_forward_strand=1,
        other_forward_strand=0,
        square_map_q=300.0,
        allele_log_likelihoods=[-1.0, -1.0],
        other_log_likelihoods=[-2.0, -1.0],
        allele_coverage=1,
        other_coverage=1,
        total_coverage=2,
        is_ref=True,
    )


def test_defaults_and_derived_values():
    obs = Observation(0, 0, 0.0, [0.0, -1.0, -2.0], [0.0, 0.0, 0.0], 4, 3)
    assert obs.total_coverage == 1
    assert obs.is_ref is True
    assert obs.coverage == 7
    assert obs.copy_number == 2


def test_constructor_copies_likelihoods():
    allele = np.array([-1.0, -2.0])
    obs = Observation(0, 0, 0.0, allele, [0.0, 0.0], 0, 0)
    allele[0] = 123.0
    assert obs.allele_log_likelihoods[0] == -1.0
    assert obs.allele_log_likelihoods.dtype == np.float64


@pytest.mark.parametrize(
    "kwargs, field",
    [
        ({"allele_forward_strand": 4}, "allele_forward_strand"),
        ({"other_forward_strand": 3}, "other_forward_strand"),
        ({"allele_coverage": -1, "allele_forward_strand": 0}, "allele_coverage"),
        ({"other_coverage": -1, "other_forward_strand": 0}, "other_coverage"),
        ({"total_coverage": 0}, "total_coverage"),
        ({"square_map_q": -0.5}, "square_map_q"),
        ({"square_map_q": float("nan")}, "square_map_q"),
        ({"square_map_q": 10**400}, "square_map_q"),
        ({"square_map_q": "900"}, "square_map_q"),
        ({"allele_log_likelihoods": ["-1", "-2"]}, "allele_log_likelihoods"),
        ({"other_log_likelihoods": [True, False]}, "other_log_likelihoods"),
        ({"allele_log_likelihoods": [-1.0]}, "other_log_likelihoods"),
        ({"allele_log_likelihoods": [-1.0], "other_log_likelihoods": [-1.0]}, "allele_log_likelihoods"),
        ({"allele_log_likelihoods": [[-1.0, -2.0]]}, "allele_log_likelihoods"),
        ({"allele_coverage": 3.0}, "allele_coverage"),
        ({"allele_coverage": True}, "allele_coverage"),
        ({"is_ref": 1}, "is_ref"),
    ],
)
def test_invalid_observation(kwargs, field):
    fields = dict(
        allele_forward_strand=2,
        other_forward_strand=1,
        square_map_q=900.0,
        allele_log_likelihoods=[-5.0, -2.0],
        other_log_likelihoods=[-1.0, -4.0],
        allele_coverage=3,
        other_coverage=2,
        total_coverage=5,
        is_ref=True,
    )
    fields.update(kwargs)
    with pytest.raises(InvalidObservation) as exc:
        Observation(**fields)
    assert exc.value.field == field


def test_numpy_integer_counts_accepted():
    obs = Observation(np.int64(1), 0, 1.0, [0.0, 0.0], [0.0, 0.0], np.int32(2), 0)
    assert obs.allele_forward_strand == 1
    assert type(obs.allele_coverage) is int


def test_fields_cannot_be_rebound():
    obs = make_a()
    with pytest.raises(AttributeError):
        obs.allele_coverage = 10  # type: ignore[misc]


def test_merge_example():
    merged = make_a().merge(make_b())
    assert merged.allele_forward_strand == 3
    assert merged.other_forward_strand == 1
    assert merged.square_map_q == 1200.0
    assert merged.allele_log_likelihoods.tolist() == [-6.0, -3.0]
    assert merged.other_log_likelihoods.tolist() == [-3.0, -5.0]
    assert merged.allele_coverage == 4
    assert merged.other_coverage == 3
    assert merged.total_coverage == 7
    assert merged.is_ref is True


def test_merge_leaves_operands_unchanged():
    a, b = make_a(), make_b()
    merged = a.merge(b)
    assert a == make_a()
    assert b == make_b()
    assert not np.shares_memory(merged.allele_log_likelihoods, a.allele_log_likelihoods)


def test_merge_inplace_reuses_receiver_storage():
    acc = make_a().duplicate()
    b = make_b()
    storage = acc.allele_log_likelihoods
    merged = acc.merge_inplace(b)
    assert merged == make_a().merge(make_b())
    assert merged.allele_log_likelihoods is storage
    assert acc.allele_log_likelihoods.tolist() == [-6.0, -3.0]
    assert b == make_b()


def test_merge_inplace_incompatible_does_not_mutate():
    acc = make_a().duplicate()
    other = make_b().duplicate(set_ref=False)
    with pytest.raises(IncompatibleMerge):
        acc.merge_inplace(other)
    assert acc == make_a()


def test_merge_rejects_different_copy_number():
    a = make_a()
    c = Observation(0, 0, 0.0, [0.0, 0.0, 0.0], [0.0, 0.0, 0.0], 0, 0)
    with pytest.raises(IncompatibleMerge) as exc:
        a.merge(c)
    assert exc.value.left == "copy_number=1"
    assert exc.value.right == "copy_number=2"


def test_merge_rejects_different_ref_flag():
    with pytest.raises(IncompatibleMerge):
        make_a().merge(make_b().invert())


def test_merge_is_commutative_and_associative_on_example():
    a, b = make_a(), make_b()
    c = Observation(0, 2, 100.0, [-0.5, -0.25], [-0.125, -3.0], 1, 4, total_coverage=6)
    assert a.duplicate().merge(b) == b.duplicate().merge(a)
    left = a.duplicate().merge(b).merge(c)
    right = a.duplicate().merge(b.duplicate().merge(c))
    assert left == right


def test_duplicate_is_independent():
    a = make_a()
    d = a.duplicate()
    assert d == a
    d.allele_log_likelihoods[0] = 0.0
    d.other_log_likelihoods[1] = 0.0
    assert a.allele_log_likelihoods.tolist() == [-5.0, -2.0]
    assert a.other_log_likelihoods.tolist() == [-1.0, -4.0]


def test_duplicate_overrides_ref_flag():
    a = make_a()
    assert a.duplicate(set_ref=False).is_ref is False
    assert a.duplicate(set_ref=None).is_ref is True
    assert a.duplicate(False).allele_coverage == a.allele_coverage


def test_invert_swaps_roles():
    inv = make_a().invert()
    assert inv.allele_forward_strand == 1
    assert inv.other_forward_strand == 2
    assert inv.allele_coverage == 2
    assert inv.other_coverage == 3
    assert inv.allele_log_likelihoods.tolist() == [-1.0, -4.0]
    assert inv.other_log_likelihoods.tolist() == [-5.0, -2.0]
    assert inv.square_map_q == 900.0
    assert inv.total_coverage == 5
    assert inv.is_ref is False


def test_invert_round_trip():
    a = make_a()
    assert a.invert().invert() == a
    assert not np.shares_memory(a.invert().other_log_likelihoods, a.allele_log_likelihoods)


def test_null_out_example():
    n = make_a().null_out()
    assert n.allele_forward_strand == 0
    assert n.other_forward_strand == 0
    assert n.square_map_q == 0.0
    assert n.allele_log_likelihoods.tolist() == [0.0, 0.0]
    assert n.other_log_likelihoods.tolist() == [-5.0, -2.0]
    assert n.allele_coverage == 0
    assert n.other_coverage == 0
    assert n.total_coverage == 5
    assert n.is_ref is False


def test_null_out_does_not_share_storage():
    a = make_a()
    n = a.null_out()
    n.other_log_likelihoods[0] = 1.0
    assert a.allele_log_likelihoods[0] == -5.0


def test_equality_and_allclose():
    a = make_a()
    nudged = Observation(2, 1, 900.0 + 1e-12, [-5.0, -2.0 + 1e-12], [-1.0, -4.0], 3, 2, 5, True)
    assert a != nudged
    assert a.allclose(nudged)
    assert not a.allclose(a.duplicate(set_ref=False))
    assert a != "not an observation"


def test_observation_is_unhashable():
    with pytest.raises(TypeError):
        hash(make_a())


def test_repr_lists_likelihoods():
    r = repr(make_a())
    assert "allele_log_likelihoods=[-5.0, -2.0]" in r
    assert "is_ref=True" in r


def test_site_allele_str_is_one_based():
    assert str(SiteAllele("chr1", 99, "A")) == "chr1:100:A"
