import pytest
from backend.momenta.schemas import Experience
from backend.momenta.search_synonyms import (
    SEARCH_SYNONYMS,
    expand_search_terms,
    matches_expanded_terms,
    search_experiences,
)


def build_experience(exp_id, title, description="", categories=()):
    return Experience(id=exp_id, title=title, description=description, categories=tuple(categories))


def test_album_expands_to_scrapbook():
    terms = expand_search_terms("álbum de fotos")

    assert "scrapbook" in terms
    assert terms[0] == "álbum de fotos"
    assert {"álbum", "de", "fotos"} <= set(terms)


def test_expansion_is_additive_and_deduplicated():
    terms = expand_search_terms("Pasta italiana")

    assert terms[:3] == ["pasta italiana", "pasta", "italiana"]
    assert "cocina italiana" in terms
    assert len(terms) == len(set(terms))


def test_multiword_key_matches_by_containment():
    assert "outdoor" in expand_search_terms("algo al aire libre")


def test_single_word_lookup_ignores_accents_and_punctuation():
    assert "spa" in expand_search_terms("¿relajacion?")


def test_unknown_words_are_kept_verbatim():
    assert expand_search_terms("zzz") == ["zzz"]
    assert expand_search_terms("   ") == []


def test_matches_expanded_terms_checks_title_description_and_categories():
    scrapbook = build_experience("s", "Scrapbook de Recuerdos", categories=["Manualidad"])
    spa = build_experience("p", "Spa en Pareja", "Masaje relajante")
    terms = expand_search_terms("álbum")

    assert matches_expanded_terms(scrapbook, terms)
    assert not matches_expanded_terms(spa, terms)


def test_search_experiences_filters_the_catalog(catalog):
    results = search_experiences("sushi", catalog)
    assert [experience.id for experience in results] == ["sushi-omakase"]


def test_search_ignores_short_and_stop_words(catalog):
    assert search_experiences("de", catalog) == list(catalog)


def test_synonym_table_is_read_only():
    with pytest.raises(TypeError):
        SEARCH_SYNONYMS["nuevo"] = ("x",)  # type: ignore[index]
