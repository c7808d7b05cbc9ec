# tests/meta_tests/normalize_test.py
import pytest

from meta.normalize import (
    bucket_assessment,
    canonical_tokens,
    extract_entities,
    normalize_intent,
    normalize_task_type,
    normalize_text,
    pattern_key,
    stem,
)

# ---------- helpers ----------

ASSESSMENT = {"urgency": "LATER", "stakes": "medium", "difficulty": "hard", "precision": "flexible"}

def mk_run(query, task_type="compare", domain="cooking", assessment=None):
    return {
        "domain": domain,
        "taskType": task_type,
        "assessment": dict(assessment or ASSESSMENT),
        "inputs": {"querySummary": query},
    }

# ---------- text ----------

def test_normalize_text_strips_punctuation_and_case():
    assert normalize_text("  Brownie   Recipes: COMPARE! ") == "brownie recipes compare"
    assert normalize_text(None) == ""

def test_stem_folds_simple_plurals():
    assert stem("cookies") == "cookie"
    assert stem("recipes") == "recipe"
    assert stem("glass") == "glass"
    assert stem("gas") == "gas"

def test_canonical_tokens_drop_stopwords_and_intent_cues():
    assert canonical_tokens("Please compare the brownie recipes") == ["brownie", "recipe"]

def test_entities_longest_first_then_alphabetical():
    assert extract_entities(["egg", "butter", "flour", "sugar", "vanilla"]) == ["vanilla", "butter", "flour"]

def test_task_type_synonyms():
    assert normalize_task_type("Comparison") == "compare"
    assert normalize_task_type("steps") == "howto"
    assert normalize_task_type("recipe_compare") == "recipe_compare"
    assert normalize_task_type(None) == ""

def test_bucket_assessment():
    assert bucket_assessment(ASSESSMENT) == {"urgency": "low", "stakes": "med", "difficulty": "high",
                                             "precision": "flexible"}
    assert bucket_assessment({"urgency": 0.9, "stakes": 0.1, "difficulty": 0.5}) == {
        "urgency": "high", "stakes": "low", "difficulty": "med", "precision": "flexible"}

# ---------- pattern keys ----------

def test_pattern_key_is_deterministic():
    run = mk_run("Compare brownie recipes")
    keys = {pattern_key(run) for _ in range(100)}
    assert len(keys) == 1
    key = keys.pop()
    domain, task_type, digest = key.split("|")
    assert (domain, task_type) == ("cooking", "compare")
    assert len(digest) == 16

def test_paraphrases_share_a_key():
    phrasings = [
        "Compare brownie recipes",
        "Please compare the brownie recipes",
        "Which brownie recipe is best?",
    ]
    keys = {pattern_key(mk_run(q)) for q in phrasings}
    assert len(keys) == 1

def test_different_intent_gets_a_different_key():
    brownies = pattern_key(mk_run("Compare brownie recipes"))
    cookies = pattern_key(mk_run("How to bake cookies", task_type="howto"))
    assert brownies != cookies

@pytest.mark.parametrize("change", [
    {"domain": "baking"},
    {"taskType": "substitute"},
    {"assessment": dict(ASSESSMENT, precision="strict")},
])
def test_key_depends_on_domain_task_type_and_assessment(change):
    base = mk_run("Compare brownie recipes")
    assert pattern_key(base) != pattern_key(dict(base, **change))

def test_normalize_intent_shape():
    n = normalize_intent(mk_run("Compare fudgy brownie recipes"))
    assert n["intent"]["tokens"] == ["brownie", "fudgy", "recipe"]
    assert n["intent"]["entities"] == ["brownie", "recipe", "fudgy"]
    assert n["taskType"] == "compare"

def test_missing_fields_do_not_raise():
    key = pattern_key({})
    assert key.startswith("unknown||")
