import numpy as np
import pytest

from reco_embeddings.profile_aggregator import (
    build_user_embedding,
    default_user_vector,
    interaction_weight,
    rated_items,
)

from conftest import make_item, make_record


def test_empty_history_returns_default_vector(encoder):
    vec, debug = build_user_embedding([], encoder=encoder)
    assert vec.shape == (encoder.dim,)
    assert np.allclose(vec, 0.5)
    assert debug["default"] is True
    assert np.array_equal(vec, default_user_vector(encoder.dim))


def test_non_positive_weights_fall_back_to_default(encoder):
    item = make_item("A", "B", "rock")
    vec, debug = build_user_embedding([(item, 0.0)], encoder=encoder)
    assert debug["default"] is True
    assert np.allclose(vec, 0.5)


def test_rock_rated_five_outweighs_pop_rated_one(encoder):
    rock = make_item("Rock Song", "Band", "rock")
    pop = make_item("Pop Song", "Singer", "pop")
    records = [
        make_record("Rock Song", "Band", "rock", rating=5, completion=1.0),
        make_record("Pop Song", "Singer", "pop", rating=1, completion=1.0),
    ]
    pairs = rated_items(records, {rock.item_id: rock, pop.item_id: pop})
    vec, debug = build_user_embedding(pairs, encoder=encoder)

    rock_i, pop_i = 1, 2  # one-hot dimensions of the default map
    assert debug["n_items"] == 2
    assert vec[rock_i] > vec[pop_i] > 0.0
    assert vec[rock_i] / vec[pop_i] == pytest.approx(5.0, rel=1e-4)
    # identical numeric features average to themselves
    assert vec[10:] == pytest.approx(encoder.encode(rock)[10:], rel=1e-5)


def test_interaction_weight_rules():
    assert interaction_weight(make_record("A", "B", "rock", rating=4)) == 4.0
    assert interaction_weight(make_record("A", "B", "rock")) == 3.0
    assert interaction_weight(make_record("A", "B", "rock", rating=5, skipped=True)) is None


def test_rated_items_matches_by_title_creator_when_ids_differ():
    item = make_item("Midnight City", "M83", "electronic", item_id="cat-1")
    records = [make_record("  midnight city ", "m83", "electronic", rating=5)]
    pairs = rated_items(records, {item.item_id: item})
    assert pairs == [(item, 5.0)]


def test_stored_embedding_preferred_when_dimension_matches(encoder):
    item = make_item("A", "B", "rock")
    stored = np.full((encoder.dim,), 0.25, dtype=np.float32)
    vec, _ = build_user_embedding([(item, 5.0)], encoder=encoder, item_embeddings={item.item_id: stored})
    assert np.allclose(vec, 0.25)

    wrong = np.ones((3,), dtype=np.float32)
    vec, _ = build_user_embedding([(item, 5.0)], encoder=encoder, item_embeddings={item.item_id: wrong})
    assert np.allclose(vec, encoder.encode(item))
