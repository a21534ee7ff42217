"""Unit tests for the canvas auto-layout."""

import random

from forkai.tree.layout import (
    LayoutConfig,
    Position,
    apply_auto_layout,
    calculate_tree_layout,
    get_new_node_position,
    organize_layout,
)
from tests.fixtures import chain, node

CONFIG = LayoutConfig(horizontal_spacing=360, vertical_spacing=80, root_x=400, root_y=100)


class TestCalculateTreeLayout:
    def test_parent_with_two_children(self):
        """A(t1) with children B(t2), C(t3): A over the midpoint, B and C one level down."""
        nodes = [node("A", None, 1), node("B", "A", 2), node("C", "A", 3)]
        positions = calculate_tree_layout(nodes, CONFIG)
        assert positions["A"] == Position(760, 100)
        assert positions["B"] == Position(580, 180)
        assert positions["C"] == Position(940, 180)

    def test_parent_centered_and_children_one_spacing_apart(self):
        nodes = [node("P", None, 0), node("L", "P", 1), node("R", "P", 2)]
        positions = calculate_tree_layout(nodes, CONFIG)
        assert positions["P"].x == (positions["L"].x + positions["R"].x) / 2
        assert positions["R"].x - positions["L"].x == CONFIG.horizontal_spacing

    def test_siblings_ordered_by_creation_time_not_input_order(self):
        nodes = [node("C", "A", 3), node("A", None, 1), node("B", "A", 2)]
        positions = calculate_tree_layout(nodes, CONFIG)
        assert positions["B"].x < positions["C"].x

    def test_deterministic(self):
        nodes = [
            node("A", None, 0), node("B", "A", 1), node("C", "A", 2),
            node("D", "B", 3), node("E", "B", 4), node("F", None, 5),
        ]
        first = calculate_tree_layout(nodes, CONFIG)
        for seed in range(3):
            shuffled = nodes[:]
            random.Random(seed).shuffle(shuffled)
            assert calculate_tree_layout(shuffled, CONFIG) == first

    def test_wide_subtree_gets_proportional_range(self):
        """B has two leaves, C has none: B's range is twice C's."""
        nodes = [
            node("A", None, 0), node("B", "A", 1), node("C", "A", 2),
            node("B1", "B", 3), node("B2", "B", 4),
        ]
        positions = calculate_tree_layout(nodes, CONFIG)
        # A spans 3 slots starting at 400: B covers [400, 1120), C covers [1120, 1480)
        assert positions["A"].x == 400 + 3 * 360 / 2
        assert positions["B"].x == 760
        assert positions["C"].x == 1300
        assert positions["B1"] == Position(580, 260)
        assert positions["B2"] == Position(940, 260)

    def test_separate_roots_are_spaced_apart(self):
        nodes = [node("A", None, 0), node("B", None, 1)]
        positions = calculate_tree_layout(nodes, CONFIG)
        assert positions["A"] == Position(580, 100)
        # second tree starts after A's width plus 2 * horizontal_spacing
        assert positions["B"] == Position(400 + 360 + 720 + 180, 100)

    def test_orphan_is_laid_out_as_root(self):
        nodes = [node("A", None, 0), node("O", "deleted", 1)]
        positions = calculate_tree_layout(nodes, CONFIG)
        assert positions["O"].y == CONFIG.root_y

    def test_stored_cycle_gets_no_position(self):
        nodes = [node("A", None, 0), node("X", "Y", 1), node("Y", "X", 2)]
        positions = calculate_tree_layout(nodes, CONFIG)
        assert set(positions) == {"A"}

    def test_deep_chain(self):
        ids = [f"n{i}" for i in range(3000)]
        positions = calculate_tree_layout(chain(*ids), CONFIG)
        assert positions["n2999"].y == 100 + 2999 * 80

    def test_empty(self):
        assert calculate_tree_layout([], CONFIG) == {}


class TestApplyAutoLayout:
    def test_manual_position_is_kept(self):
        nodes = [node("A", None, 0, x=50, y=50), node("B", "A", 1)]
        laid_out = {n.id: n for n in apply_auto_layout(nodes, CONFIG)}
        assert (laid_out["A"].x, laid_out["A"].y) == (50, 50)

    def test_unplaced_node_gets_computed_position(self):
        nodes = [node("A", None, 0, x=50, y=50), node("B", "A", 1)]
        laid_out = {n.id: n for n in apply_auto_layout(nodes, CONFIG)}
        assert (laid_out["B"].x, laid_out["B"].y) == (580, 180)

    def test_idempotent(self):
        nodes = [node("A", None, 0), node("B", "A", 1)]
        once = apply_auto_layout(nodes, CONFIG)
        assert apply_auto_layout(once, CONFIG) == once

    def test_does_not_mutate_input(self):
        nodes = [node("A", None, 0)]
        apply_auto_layout(nodes, CONFIG)
        assert (nodes[0].x, nodes[0].y) == (0, 0)


class TestOrganizeLayout:
    def test_overrides_manual_positions(self):
        nodes = [node("A", None, 0, x=50, y=50), node("B", "A", 1, x=9, y=9)]
        organized = {n.id: n for n in organize_layout(nodes, CONFIG)}
        assert (organized["A"].x, organized["A"].y) == (580, 100)
        assert (organized["B"].x, organized["B"].y) == (580, 180)


class TestNewNodePosition:
    def test_first_root(self):
        assert get_new_node_position(None, [], CONFIG) == Position(400, 100)

    def test_next_root_goes_right_of_existing_roots(self):
        nodes = [node("A", None, 0, x=500, y=100)]
        assert get_new_node_position(None, nodes, CONFIG) == Position(500 + 720, 100)

    def test_first_child_below_parent(self):
        nodes = [node("A", None, 0, x=500, y=100)]
        assert get_new_node_position("A", nodes, CONFIG) == Position(500, 180)

    def test_next_child_right_of_siblings(self):
        nodes = [node("A", None, 0, x=500, y=100), node("B", "A", 1, x=500, y=180)]
        assert get_new_node_position("A", nodes, CONFIG) == Position(860, 180)

    def test_unknown_parent_falls_back_to_root_slot(self):
        assert get_new_node_position("ghost", [], CONFIG) == Position(400, 100)
