from citerag.generation.prompt import INSTRUCTIONS, build_system_prompt


def test_prompt_contains_grounding_constraints() -> None:
    assert "Only use information from the provided context" in INSTRUCTIONS
    assert "inline citations like [1], [2]" in INSTRUCTIONS
    assert "doesn't contain enough information" in INSTRUCTIONS
    assert "concise" in INSTRUCTIONS


def test_system_prompt_starts_with_instructions_and_lists_context() -> None:
    prompt = build_system_prompt([])
    assert prompt.startswith(INSTRUCTIONS)
    assert prompt.endswith("Context:\n")
