"""Id generation and request scoping helpers"""
from types import SimpleNamespace
from pmcmicro.utils.helpers import next_sequence_id, split_client_names, resolve_branch_id, resolve_staff_name


def user(role, branch_id=None, staff_name=None):
    return SimpleNamespace(
        is_authenticated=True,
        role=role,
        branch_id=branch_id,
        staff_name=staff_name,
        sees_all_branches=role in ('admin', 'ceo'),
    )


def test_next_sequence_id():
    assert next_sequence_id('pmcd', []) == 'pmcd-01'
    assert next_sequence_id('pmcd', ['pmcd-01', 'pmcd-07', 'pmcd-03']) == 'pmcd-08'
    assert next_sequence_id('loan', ['loan-99']) == 'loan-100'


def test_next_sequence_id_ignores_foreign_ids():
    assert next_sequence_id('pmcd', ['loan-40', 'pmcd-x', None, 'pmcd-02']) == 'pmcd-03'


def test_split_client_names():
    assert split_client_names('Fatmata Bangura\nIbrahim Conteh, Mariama Koroma\n\n , ') == [
        'Fatmata Bangura', 'Ibrahim Conteh', 'Mariama Koroma'
    ]
    assert split_client_names('') == []


def test_branch_users_are_pinned_to_their_branch():
    assert resolve_branch_id(user('branch', branch_id=3), requested=7) == 3
    assert resolve_branch_id(user('staff', branch_id=3)) == 3


def test_head_office_users_pick_a_branch():
    assert resolve_branch_id(user('admin'), requested=7) == 7
    assert resolve_branch_id(user('ceo')) is None


def test_staff_users_see_their_own_portfolio():
    assert resolve_staff_name(user('staff', staff_name='Aminata Kamara'), 'Someone Else') == 'Aminata Kamara'
    assert resolve_staff_name(user('branch'), 'Mohamed Sesay') == 'Mohamed Sesay'
    assert resolve_staff_name(user('admin'), '') is None
