from backend.momenta.prefilters import prefilter_by_min_people
from backend.momenta.schemas import Experience, Price, UserContext
from backend.momenta.scoring import (
    budget_bracket,
    format_cop,
    generate_fallback_recommendations,
    generate_reasons,
    score_experience,
)
from backend.momenta.settings import ScoringWeights


def build_experience(**overrides):
    base = dict(
        id="exp",
        title="Demo",
        description="Una experiencia de prueba",
        categories=("En Bogotá",),
        price=Price(amount="120000"),
        min_people=None,
        location="Bogotá",
        url="https://momenta.co/demo",
    )
    base.update(overrides)
    return Experience(**base)


def couple_context(**overrides):
    base = dict(ciudad="Bogotá", personas=2, tipo_grupo="pareja", nivel_energia="calm_mindful")
    base.update(overrides)
    return UserContext(**base)


def test_couple_scenario_prefers_couple_experience():
    intimate = build_experience(
        id="a", title="Cena para dos", categories=("Para parejas", "Gastronómico"), min_people=2
    )
    party = build_experience(
        id="b", title="Fiesta en grupo", categories=("Para grupos", "Fiesta"), min_people=6
    )
    context = couple_context()

    first = score_experience(context, intimate)
    second = score_experience(context, party)

    assert first.critical == 100
    assert second.critical == 70  # minPeople penalty only
    assert (first.context, first.mood, first.modality) == (90, 100, 70)
    assert first.total == 95
    assert second.mood == 0  # two energy penalties clamp at zero
    assert second.total == 44
    assert first.total > second.total


def test_location_mismatch_costs_fifty_points():
    near = build_experience(categories=("Cerca a Bogotá",), location="Sopó, Cerca a Bogotá")
    breakdown = score_experience(UserContext(ciudad="Bogotá"), near)
    assert breakdown.critical == 50


def test_min_people_violator_drops_out_of_top_five():
    violator = build_experience(id="big", title="Solo grupos", min_people=6)
    others = [build_experience(id=f"ok-{idx}", title=f"Plan {idx}") for idx in range(6)]
    pool = [violator, *others]
    context = couple_context()

    filtered = prefilter_by_min_people(pool, context.personas).filtered
    top = generate_fallback_recommendations(context, filtered)

    assert score_experience(context, violator).critical == 70
    assert len(top) == 5
    assert "big" not in {rec.experience.id for rec in top}


def test_exclusion_reduces_mood_by_at_least_twenty_five():
    crowded = build_experience(id="x", categories=("Gastronómico", "Para grupos"))
    quiet = build_experience(id="y", categories=("Gastronómico",))
    context = UserContext(ciudad="Bogotá", evitar=["multitudes"])

    crowded_mood = score_experience(context, crowded).mood
    quiet_mood = score_experience(context, quiet).mood

    assert quiet_mood - crowded_mood >= 25


def test_exclusions_are_cumulative_across_tags_and_items():
    experience = build_experience(categories=("Para grupos", "Fiesta"))
    context = UserContext(nivel_energia="social", evitar=["multitudes", "ruido"])
    # 50 + 2 * 25 energy boosts - 4 * 25 avoid-tag pairs
    assert score_experience(context, experience).mood == 0


def test_exclusion_keyword_counts_once_per_exclusion():
    experience = build_experience(title="Yoga al Amanecer", description="Clase de yoga y meditación")
    context = UserContext(evitar=["yoga"])
    assert score_experience(context, experience).mood == 25


def test_general_category_adds_twenty_per_matching_tag():
    experience = build_experience(categories=("Cocina", "Gastronómico"))
    breakdown = score_experience(UserContext(categoria="gastronomia"), experience)
    assert breakdown.context == 90


def test_specific_category_matches_through_synonyms():
    brewery = build_experience(
        title="Cata Cervecera Artesanal", description="Degustación en una cervecería"
    )
    spa = build_experience(title="Spa en Pareja", description="Masaje relajante")
    context = UserContext(categoria="cerveza")

    assert score_experience(context, brewery).context == 70
    assert score_experience(context, spa).context == 50


def test_budget_occasion_and_modality_bonuses():
    experience = build_experience(
        title="Picnic al aire libre",
        categories=("Para parejas",),
        price=Price(amount="80000"),
    )
    context = UserContext(presupuesto="bajo", ocasion="aniversario", modalidad="outdoor")
    breakdown = score_experience(context, experience)

    assert breakdown.context == 65  # 50 + occasion 10 + budget 5
    assert breakdown.modality == 85


def test_intention_keyword_bonus():
    experience = build_experience(title="Cena sorpresa", description="Un plan diferente")
    breakdown = score_experience(UserContext(intencion="sorprender"), experience)
    assert breakdown.mood == 60


def test_budget_brackets():
    assert budget_bracket(None) is None
    assert budget_bracket(99_999) == "bajo"
    assert budget_bracket(100_000) == "medio"
    assert budget_bracket(250_000) == "medio"
    assert budget_bracket(250_001) == "alto"


def test_custom_weights_change_total_only():
    experience = build_experience(categories=("Para parejas", "Gastronómico"), min_people=2)
    context = couple_context()
    weights = ScoringWeights(critical=1.0, context=0.0, mood=0.0, modality=0.0)

    breakdown = score_experience(context, experience, weights)

    assert breakdown.total == 100
    assert breakdown.context == 90


def test_fallback_caps_at_five_and_sorts_descending():
    pool = [build_experience(id=f"e{idx}", title=f"Plan {idx}") for idx in range(4)]
    pool.append(build_experience(id="best", categories=("Para parejas", "Gastronómico")))
    pool.append(build_experience(id="extra", title="Otro plan"))

    results = generate_fallback_recommendations(couple_context(), pool)
    totals = [rec.score_breakdown.total for rec in results]

    assert len(results) == 5
    assert results[0].experience.id == "best"
    assert totals == sorted(totals, reverse=True)


def test_fallback_keeps_input_order_for_ties():
    pool = [build_experience(id=f"tie-{idx}", title=f"Plan {idx}") for idx in range(3)]
    results = generate_fallback_recommendations(UserContext(ciudad="Bogotá"), pool)
    assert [rec.experience.id for rec in results] == ["tie-0", "tie-1", "tie-2"]


def test_fallback_handles_empty_pool():
    assert generate_fallback_recommendations(couple_context(), []) == []


def test_reasons_use_score_band_and_energy_sentence():
    experience = build_experience(
        title="Cena Privada",
        categories=("Para parejas", "Gastronómico"),
        price=Price(amount="380000"),
    )
    context = couple_context()
    breakdown = score_experience(context, experience)

    reasons = generate_reasons(experience, breakdown, context)

    assert reasons.startswith("¡Cena Privada encaja muy bien")
    assert "íntimo y especial" in reasons
    assert "$380.000 COP" in reasons


def test_reasons_fall_back_to_group_then_category():
    experience = build_experience(title="Taller", categories=("Manualidad",))
    group_context = UserContext(tipo_grupo="familia")
    plain_context = UserContext()

    group_reasons = generate_reasons(experience, score_experience(group_context, experience), group_context)
    plain_reasons = generate_reasons(experience, score_experience(plain_context, experience), plain_context)

    assert "en familia" in group_reasons
    assert "experiencia de manualidad" in plain_reasons
    assert "buena opción" in plain_reasons
    assert "COP" not in plain_reasons


def test_format_cop_uses_dot_separators():
    assert format_cop(1_250_000) == "$1.250.000"


def test_occasion_bonus_matches_free_text_occasion():
    party = build_experience(categories=("Fiesta",))

    assert score_experience(UserContext(ocasion="cumpleaños"), party).context == 60
    assert score_experience(UserContext(ocasion="Cumpleaños de mi mamá"), party).context == 60
    assert score_experience(UserContext(ocasion="una reunión"), party).context == 50


def test_category_lookup_ignores_case_and_accents():
    experience = build_experience(categories=("Cocina", "Gastronómico"))
    breakdown = score_experience(UserContext(categoria="Gastronomía"), experience)
    assert breakdown.context == 90
