"""
Tests d'intégration du registre d'appel sur une vraie base SQLite.
Couverture : resoumission idempotente, remplacement atomique, rollback,
unicité de l'observation de groupe, lots par cohorte, lectures triées.
"""

from datetime import date

import pytest
from sqlalchemy import event, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from conftest import DAY, add_staff, add_student
from internat.models.attendance import AttendanceRecord
from internat.models.observation import GroupObservation
from internat.schemas.roll_call import AttendanceRecordIn, RollCallEntry, RollCallSave
from internat.services.attendance_service import (
    RollCallSaveError,
    find_by_grade_level_and_day,
    find_group_observation,
    get_roll_call,
    list_roll_call_history,
    replace_for_group_and_day,
    save_roll_call,
    upsert_group_observation,
)


# --- Helpers ---

def count_records(db, grade_level="6eme", day=DAY):
    return db.execute(
        select(func.count()).select_from(AttendanceRecord).where(
            AttendanceRecord.grade_level == grade_level,
            AttendanceRecord.day == day,
        )
    ).scalar()


def make_records(students, staff, status="present"):
    return [AttendanceRecordIn(student_id=s.id, staff_id=staff.id, status=status) for s in students]


def seed_boys(db, n):
    return [add_student(db, f"Nom{i:02d}", f"Prenom{i:02d}") for i in range(n)]


# ============================================================
# Resoumission idempotente
# ============================================================

def test_resoumission_identique_sans_doublon(db_session):
    """Enregistrer N fois le même lot laisse exactement le même ensemble de lignes."""
    staff = add_staff(db_session)
    students = seed_boys(db_session, 10)
    records = make_records(students, staff)

    for _ in range(4):
        assert replace_for_group_and_day(db_session, "6eme", DAY, records) == 10

    assert count_records(db_session) == 10
    rows = find_by_grade_level_and_day(db_session, "6eme", DAY)
    assert sorted(r[0].student_id for r in rows) == sorted(s.id for s in students)


def test_resoumission_lot_plus_court(db_session):
    """Resoumettre avec 5 élèves au lieu de 10 → exactement 5 lignes ensuite."""
    staff = add_staff(db_session)
    students = seed_boys(db_session, 10)

    replace_for_group_and_day(db_session, "6eme", DAY, make_records(students, staff))
    replace_for_group_and_day(db_session, "6eme", DAY, make_records(students[:5], staff))

    assert count_records(db_session) == 5
    assert len(find_by_grade_level_and_day(db_session, "6eme", DAY)) == 5


def test_resoumission_ne_touche_pas_les_autres_jours_ni_niveaux(db_session):
    staff = add_staff(db_session)
    boys = seed_boys(db_session, 3)
    fifth = add_student(db_session, "Bernard", "Paul", grade_level="5eme")
    admin = add_staff(db_session, role="cpe")

    replace_for_group_and_day(db_session, "6eme", date(2024, 1, 14), make_records(boys, staff))
    replace_for_group_and_day(db_session, "5eme", DAY, make_records([fifth], admin))
    replace_for_group_and_day(db_session, "6eme", DAY, make_records(boys[:1], staff))

    assert count_records(db_session, day=date(2024, 1, 14)) == 3
    assert count_records(db_session, grade_level="5eme") == 1
    assert count_records(db_session) == 1


def test_jour_normalise_depuis_datetime(db_session):
    """Un horodatage du soir est ramené au jour UTC : pas de lot « fantôme » le lendemain."""
    staff = add_staff(db_session)
    students = seed_boys(db_session, 2)

    replace_for_group_and_day(db_session, "6eme", "2024-01-15T21:45:00+00:00", make_records(students, staff))
    replace_for_group_and_day(db_session, "6eme", "2024-01-15", make_records(students, staff))

    assert count_records(db_session) == 2


# ============================================================
# Remplacement atomique
# ============================================================

def test_lecteur_concurrent_voit_ancien_ou_nouveau_lot(file_engine):
    """
    Un lecteur interrogeant la base pendant la transaction d'écriture voit l'ancien
    lot complet (8), puis le nouveau lot complet (5) après commit, jamais autre chose.
    """
    Session = sessionmaker(bind=file_engine, autoflush=False)
    writer, reader = Session(), Session()
    staff = add_staff(writer)
    students = seed_boys(writer, 8)
    replace_for_group_and_day(writer, "6eme", DAY, make_records(students, staff))

    def read_count():
        n = count_records(reader)
        reader.rollback()
        return n

    observed = []
    real_commit = writer.commit

    def commit_with_concurrent_read():
        writer.flush()  # DELETE + INSERT exécutés, transaction encore ouverte
        observed.append(read_count())
        real_commit()

    writer.commit = commit_with_concurrent_read
    replace_for_group_and_day(writer, "6eme", DAY, make_records(students[:5], staff, status="absent"))
    observed.append(read_count())

    assert observed == [8, 5]
    writer.close()
    reader.close()


def test_echec_transaction_conserve_ancien_lot(db_session):
    """Si l'insertion échoue après la suppression, tout est annulé."""
    staff = add_staff(db_session)
    students = seed_boys(db_session, 6)
    replace_for_group_and_day(db_session, "6eme", DAY, make_records(students, staff))

    def fail_flush(session, flush_context, instances):
        raise OperationalError("INSERT INTO attendance_records", {}, Exception("disk I/O error"))

    event.listen(db_session, "before_flush", fail_flush)
    try:
        with pytest.raises(RollCallSaveError):
            replace_for_group_and_day(db_session, "6eme", DAY, make_records(students[:2], staff))
    finally:
        event.remove(db_session, "before_flush", fail_flush)

    assert count_records(db_session) == 6


def test_validation_avant_toute_ecriture(db_session):
    """Un élève d'un autre niveau → ValueError, l'ancien lot reste en place."""
    staff = add_staff(db_session)
    students = seed_boys(db_session, 3)
    replace_for_group_and_day(db_session, "6eme", DAY, make_records(students, staff))
    intrus = add_student(db_session, "Petit", "Léa", grade_level="4eme", cohort="F")

    with pytest.raises(ValueError, match="pas en 6eme"):
        replace_for_group_and_day(db_session, "6eme", DAY, make_records([intrus], staff))

    assert count_records(db_session) == 3


def test_lot_vide_refuse(db_session):
    with pytest.raises(ValueError, match="Au moins un appel"):
        replace_for_group_and_day(db_session, "6eme", DAY, [])


# ============================================================
# Lots par cohorte
# ============================================================

def test_lot_par_cohorte_ne_supprime_pas_l_autre_cohorte(db_session):
    aed_f = add_staff(db_session, cohort="F")
    aed_m = add_staff(db_session, cohort="M")
    girls = [add_student(db_session, "Durand", "Emma", cohort="F"), add_student(db_session, "Moreau", "Jade", cohort="F")]
    boys = seed_boys(db_session, 3)

    replace_for_group_and_day(db_session, "6eme", DAY, make_records(girls, aed_f), cohort="F")
    replace_for_group_and_day(db_session, "6eme", DAY, make_records(boys, aed_m), cohort="M")
    replace_for_group_and_day(db_session, "6eme", DAY, make_records(boys[:1], aed_m), cohort="M")

    assert len(find_by_grade_level_and_day(db_session, "6eme", DAY, cohort="F")) == 2
    assert len(find_by_grade_level_and_day(db_session, "6eme", DAY, cohort="M")) == 1
    assert count_records(db_session) == 3


def test_lot_par_cohorte_refuse_un_eleve_de_l_autre_cohorte(db_session):
    aed = add_staff(db_session, cohort="M")
    girl = add_student(db_session, "Durand", "Emma", cohort="F")

    with pytest.raises(ValueError, match="cohorte M"):
        replace_for_group_and_day(db_session, "6eme", DAY, make_records([girl], aed), cohort="M")


# ============================================================
# Observation de groupe
# ============================================================

def test_upsert_observation_une_seule_ligne_derniere_gagne(db_session):
    staff = add_staff(db_session)
    other = add_staff(db_session, role="cpe")

    upsert_group_observation(db_session, DAY, "6eme", "M", "Chahut après l'extinction", staff.id)
    upsert_group_observation(db_session, DAY, "6eme", "M", "Calme", other.id)

    rows = db_session.execute(select(GroupObservation)).scalars().all()
    assert len(rows) == 1
    assert rows[0].text == "Calme"
    assert rows[0].staff_id == other.id


def test_upsert_observation_cles_distinctes(db_session):
    staff = add_staff(db_session)
    upsert_group_observation(db_session, DAY, "6eme", "M", "A", staff.id)
    upsert_group_observation(db_session, DAY, "6eme", "F", "B", staff.id)
    upsert_group_observation(db_session, date(2024, 1, 16), "6eme", "M", "C", staff.id)

    assert db_session.execute(select(func.count()).select_from(GroupObservation)).scalar() == 3
    assert find_group_observation(db_session, DAY, "6eme", "F").text == "B"


def test_upsert_observation_trop_longue(db_session):
    staff = add_staff(db_session)
    with pytest.raises(ValueError, match="500"):
        upsert_group_observation(db_session, DAY, "6eme", "M", "x" * 501, staff.id)


# ============================================================
# Lectures
# ============================================================

def test_find_trie_par_nom(db_session):
    staff = add_staff(db_session)
    students = [
        add_student(db_session, "Roux", "Hugo"),
        add_student(db_session, "Dupont", "Lucas"),
        add_student(db_session, "Blanc", "Noé"),
    ]
    replace_for_group_and_day(db_session, "6eme", DAY, make_records(students, staff))

    rows = find_by_grade_level_and_day(db_session, "6eme", DAY)
    assert [student.last_name for _, student in rows] == ["Blanc", "Dupont", "Roux"]


def test_get_roll_call_inexistant(db_session):
    result = get_roll_call(db_session, "6eme", DAY)
    assert result.exists is False
    assert result.entries == []
    assert result.day == DAY


def test_get_roll_call_existant_avec_observation(db_session):
    staff = add_staff(db_session)
    students = seed_boys(db_session, 2)
    save_roll_call(db_session, RollCallSave(
        staff_id=staff.id,
        grade_level="6eme",
        day=DAY,
        entries=[RollCallEntry(student_id=s.id, status="present") for s in students],
        observation="Extinction des feux à l'heure",
    ))

    result = get_roll_call(db_session, "6eme", DAY, cohort="M")
    assert result.exists is True
    assert len(result.entries) == 2
    assert result.observation == "Extinction des feux à l'heure"
    assert result.recorded_by.id == staff.id


# ============================================================
# save_roll_call : lot + observation dans une seule transaction
# ============================================================

def test_save_roll_call_aed_restreint_a_sa_cohorte(db_session):
    """Sans cohorte explicite, l'appel d'un AED ne remplace que sa cohorte."""
    aed_f = add_staff(db_session, cohort="F")
    aed_m = add_staff(db_session, cohort="M")
    girl = add_student(db_session, "Durand", "Emma", cohort="F")
    boy = add_student(db_session, "Dupont", "Lucas", cohort="M")

    save_roll_call(db_session, RollCallSave(
        staff_id=aed_f.id, grade_level="6eme", day=DAY,
        entries=[RollCallEntry(student_id=girl.id, status="present")],
    ))
    result = save_roll_call(db_session, RollCallSave(
        staff_id=aed_m.id, grade_level="6eme", day=DAY,
        entries=[RollCallEntry(student_id=boy.id, status="absent")],
    ))

    assert result.cohort == "M"
    assert count_records(db_session) == 2


def test_save_roll_call_observation_vide_ignoree(db_session):
    """Une observation vide ne remplace pas l'observation déjà enregistrée."""
    staff = add_staff(db_session)
    students = seed_boys(db_session, 1)
    entries = [RollCallEntry(student_id=students[0].id, status="present")]

    first = save_roll_call(db_session, RollCallSave(
        staff_id=staff.id, grade_level="6eme", day=DAY, entries=entries, observation="Infirmerie : 1",
    ))
    second = save_roll_call(db_session, RollCallSave(
        staff_id=staff.id, grade_level="6eme", day=DAY, entries=entries, observation="   ",
    ))

    assert first.observation_saved is True
    assert second.observation_saved is False
    assert find_group_observation(db_session, DAY, "6eme", "M").text == "Infirmerie : 1"


def test_save_roll_call_aed_autre_niveau_refuse(db_session):
    aed = add_staff(db_session, grade_level="5eme")
    student = add_student(db_session, "Dupont", "Lucas")

    with pytest.raises(ValueError, match="niveau 5eme"):
        save_roll_call(db_session, RollCallSave(
            staff_id=aed.id, grade_level="6eme", day=DAY,
            entries=[RollCallEntry(student_id=student.id, status="present")],
        ))
    assert count_records(db_session) == 0


# ============================================================
# Historique
# ============================================================

def test_historique_regroupe_par_niveau_et_jour(db_session):
    staff = add_staff(db_session, role="manager")
    sixth = seed_boys(db_session, 2)
    term = add_student(db_session, "Garnier", "Inès", grade_level="Term", cohort="F")

    replace_for_group_and_day(db_session, "6eme", date(2024, 1, 14), make_records(sixth, staff))
    replace_for_group_and_day(db_session, "6eme", DAY, make_records(sixth, staff, status="absent"))
    replace_for_group_and_day(db_session, "Term", DAY, make_records([term], staff, status="acf"))

    history = list_roll_call_history(db_session)
    assert history.total == 5
    assert [(g.grade_level, g.day) for g in history.groups] == [
        ("6eme", DAY), ("6eme", date(2024, 1, 14)), ("Term", DAY),
    ]
    assert history.groups[0].absent_count == 2
    assert history.groups[2].acf_count == 1

    filtered = list_roll_call_history(db_session, day=DAY, grade_level="Term")
    assert len(filtered.groups) == 1
