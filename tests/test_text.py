from news_events.text import jaccard_similarity, normalize_text, stable_hash, tokenize


def test_normalize_text_strips_punctuation_and_case():
    assert normalize_text("  CBN   raises\trates, again!  ") == "cbn raises rates again"
    assert normalize_text("") == ""


def test_tokenize_drops_stopwords_and_short_tokens():
    assert tokenize("The CBN raises rates to 27% in Lagos") == ["cbn", "raises", "rates", "lagos"]
    assert tokenize("It is a go") == []


def test_jaccard_similarity_is_symmetric():
    a = tokenize("CBN raises rates")
    b = tokenize("CBN raises interest rates again")

    assert jaccard_similarity(a, b) == jaccard_similarity(b, a)
    assert jaccard_similarity(a, b) == 3 / 5


def test_jaccard_similarity_edge_cases():
    assert jaccard_similarity([], []) == 1.0
    assert jaccard_similarity(["cbn"], []) == 0.0
    assert jaccard_similarity(["cbn", "rates"], ["rates", "cbn", "cbn"]) == 1.0


def test_stable_hash_is_deterministic_fnv1a():
    # Reference FNV-1a 32-bit values.
    assert stable_hash("") == "811c9dc5"
    assert stable_hash("a") == "e40c292c"
    assert stable_hash("Punch|Title|") == stable_hash("Punch|Title|")
    assert stable_hash("Punch|Title|") != stable_hash("Punch|Title|x")
