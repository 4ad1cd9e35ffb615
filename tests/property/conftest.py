"""Hypothesis strategies for property testing.

Provides reusable strategies for generating roles, actions and policies
that match the authorization engine's data contracts.
"""

from hypothesis import strategies as st

from src.lambdas.shared.auth.enums import VALID_ACTIONS, VALID_ROLES, Action, Role

roles = st.sampled_from(list(Role))
actions = st.sampled_from(list(Action))


@st.composite
def unknown_role_name(draw):
    """Generate a string that is not a defined role.

    Returns:
        str: Arbitrary text outside VALID_ROLES
    """
    return draw(st.text(max_size=30).filter(lambda s: s not in VALID_ROLES))


@st.composite
def unknown_action_name(draw):
    """Generate a string that is not a defined action."""
    return draw(st.text(max_size=30).filter(lambda s: s not in VALID_ACTIONS))


@st.composite
def role_ordering(draw):
    """Generate a permutation of every role (lowest privilege first).

    Returns:
        tuple[Role, ...]: Valid hierarchy for AuthorizationPolicy
    """
    return tuple(draw(st.permutations(list(Role))))


@st.composite
def permission_table(draw):
    """Generate an action table with a non-empty allowed set per action.

    Returns:
        dict[Action, frozenset[Role]]
    """
    chosen = draw(st.lists(actions, unique=True, min_size=1))
    return {
        action: frozenset(draw(st.sets(roles, min_size=1)))
        for action in chosen
    }
