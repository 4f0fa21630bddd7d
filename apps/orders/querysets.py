from django.db.models import Q


def tasks_for_branch(queryset, branch):
    """Tasks owned by ``branch`` plus those it fulfils for other branches."""
    return queryset.filter(Q(branch=branch) | Q(fulfilling_branch=branch))
