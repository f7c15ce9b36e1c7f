from backend.momenta.tag_mapping import (
    AVAILABLE_TAGS,
    ENERGY_TAG_MAPPING,
    GROUP_TAG_MAPPING,
    avoid_tags_for,
    generate_scoring_instructions,
)


def test_avoid_tags_are_deduplicated_in_order():
    assert avoid_tags_for(["multitudes", "ruido"]) == ["Para grupos", "Fiesta"]
    assert avoid_tags_for(["desconocido"]) == []


def test_family_boost_collapses_case_variants():
    assert GROUP_TAG_MAPPING["familia"].boost == ("Para niños", "Cocina", "Manualidad")


def test_energy_tags_exist_in_catalog_vocabulary():
    known = {tag.lower() for tag in AVAILABLE_TAGS}
    for rule in ENERGY_TAG_MAPPING.values():
        assert {tag.lower() for tag in (*rule.boost, *rule.penalty)} <= known


def test_scoring_instructions_include_each_requested_section():
    text = generate_scoring_instructions(
        nivel_energia="calm_mindful",
        tipo_grupo="pareja",
        categoria="gastronomia",
        evitar=["multitudes"],
    )
    sections = text.split("\n\n")

    assert len(sections) == 4
    assert sections[0].startswith("FILTRO POR NIVEL DE ENERGÍA")
    assert "PRIORIZA experiencias con tags: Para parejas" in sections[0]
    assert sections[1].startswith("FILTRO POR TIPO DE GRUPO (pareja)")
    assert "Cocina, Gastronómico" in sections[2]
    assert "Para grupos, Fiesta" in sections[3]


def test_scoring_instructions_empty_without_context():
    assert generate_scoring_instructions() == ""
    assert generate_scoring_instructions(nivel_energia="desconocido") == ""
