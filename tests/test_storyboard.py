from __future__ import annotations

import copy

import pytest

from storyboard import (
    append_offsets,
    delete_prompt,
    empty_generation,
    insert_prompt,
    move_prompt,
    reindex_prompts,
)


def make_board(*bodies):
    prompts = [
        {"id": f"{i + 1:02d}", "time_range": "", "referenced_ids": [], "content": body}
        for i, body in enumerate(bodies)
    ]
    generations = {
        p["id"]: {"image_base64": f"img-{p['content']}", "pending": False, "error": None}
        for p in prompts
    }
    return prompts, generations


def results_by_content(prompts, generations):
    return {p["content"]: generations.get(p["id"]) for p in prompts}


def test_reindex_recomputes_ids_times_and_headings():
    prompts = [
        {"id": "07", "time_range": "x", "referenced_ids": ["a"], "content": "Sequence 7: Late\nPrompt: Sequence 9: stays"},
        {"id": "02", "time_range": "y", "referenced_ids": [], "content": "no heading here at all"},
        {"id": "99", "time_range": "z", "referenced_ids": [], "content": "sequence 3: lower case heading"},
    ]
    reindexed = reindex_prompts(prompts)
    assert [p["id"] for p in reindexed] == ["01", "02", "03"]
    assert [p["time_range"] for p in reindexed] == ["00:00 - 00:15", "00:15 - 00:30", "00:30 - 00:45"]
    assert reindexed[0]["content"] == "Sequence 1: Late\nPrompt: Sequence 9: stays"
    assert reindexed[1]["content"] == "no heading here at all"
    assert reindexed[2]["content"] == "Sequence 3: lower case heading"
    assert reindexed[0]["referenced_ids"] == ["a"]
    assert prompts[0]["id"] == "07"


def test_delete_carries_results_with_content():
    prompts, generations = make_board("alpha", "bravo", "charlie")
    new_prompts, new_generations = delete_prompt(prompts, generations, 1)
    assert [p["content"] for p in new_prompts] == ["alpha", "charlie"]
    assert new_generations == {"01": generations["01"], "02": generations["03"]}


def test_delete_keeps_missing_results_missing():
    prompts, generations = make_board("alpha", "bravo", "charlie")
    generations = {"03": generations["03"]}
    _, new_generations = delete_prompt(prompts, generations, 0)
    assert new_generations == {"02": generations["03"]}


def test_move_swaps_results_with_content():
    prompts, generations = make_board("alpha", "bravo", "charlie")
    new_prompts, new_generations = move_prompt(prompts, generations, 0, "down")
    assert [p["content"] for p in new_prompts] == ["bravo", "alpha", "charlie"]
    assert new_generations == {"01": generations["02"], "02": generations["01"], "03": generations["03"]}


@pytest.mark.parametrize("index,direction", [(0, "up"), (2, "down"), (5, "up"), (-1, "down"), (1, "left")])
def test_move_out_of_bounds_is_a_no_op(index, direction):
    prompts, generations = make_board("alpha", "bravo", "charlie")
    new_prompts, new_generations = move_prompt(prompts, generations, index, direction)
    assert new_prompts == prompts
    assert new_generations == generations


def test_insert_before_first_shifts_every_result():
    prompts, generations = make_board("alpha", "bravo", "charlie")
    new_prompts, new_generations = insert_prompt(prompts, generations, 0, "before", "placeholder")
    assert [p["content"] for p in new_prompts] == ["placeholder", "alpha", "bravo", "charlie"]
    assert new_generations == {
        "01": empty_generation(),
        "02": generations["01"],
        "03": generations["02"],
        "04": generations["03"],
    }


def test_insert_after_middle():
    prompts, generations = make_board("alpha", "bravo", "charlie")
    new_prompts, new_generations = insert_prompt(prompts, generations, 1, "after", "placeholder")
    assert [p["content"] for p in new_prompts] == ["alpha", "bravo", "placeholder", "charlie"]
    assert new_generations["03"] == empty_generation()
    assert new_generations["04"] == generations["03"]


def test_insert_into_empty_board():
    new_prompts, new_generations = insert_prompt([], {}, 0, "after", "Sequence 9: fresh")
    assert new_prompts == [{
        "id": "01",
        "time_range": "00:00 - 00:15",
        "referenced_ids": [],
        "content": "Sequence 1: fresh",
    }]
    assert new_generations == {"01": empty_generation()}


def test_insert_with_bad_position_is_a_no_op():
    prompts, generations = make_board("alpha")
    assert insert_prompt(prompts, generations, 0, "inside", "x") == (prompts, generations)
    assert insert_prompt(prompts, generations, 4, "after", "x") == (prompts, generations)


@pytest.mark.parametrize("operation", [
    lambda p, g: delete_prompt(p, g, 2),
    lambda p, g: delete_prompt(p, g, 0),
    lambda p, g: move_prompt(p, g, 1, "up"),
    lambda p, g: move_prompt(p, g, 2, "down"),
    lambda p, g: insert_prompt(p, g, 0, "before", "new"),
    lambda p, g: insert_prompt(p, g, 3, "after", "new"),
    lambda p, g: insert_prompt(p, g, 2, "before", "new"),
])
def test_every_surviving_scene_keeps_its_result(operation):
    prompts, generations = make_board("alpha", "bravo", "charlie", "delta")
    before = results_by_content(prompts, generations)
    prompts_copy, generations_copy = copy.deepcopy(prompts), copy.deepcopy(generations)

    new_prompts, new_generations = operation(prompts, generations)

    after = results_by_content(new_prompts, new_generations)
    for content, result in after.items():
        if content == "new":
            assert result == empty_generation()
        else:
            assert result == before[content]
    assert prompts == prompts_copy
    assert generations == generations_copy


def test_append_offsets():
    prompts, _ = make_board("alpha", "bravo")
    assert append_offsets(prompts) == (2, 30)
    assert append_offsets([]) == (0, 0)
