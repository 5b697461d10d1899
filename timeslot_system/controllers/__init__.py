"""Controllers deciding which candidate slot a lecture unit tries next."""

from .first_fit_controller import FirstFitController
from .round_robin_controller import RoundRobinController


def make_controller(candidates, prioritize_even_distribution):
    if prioritize_even_distribution:
        return RoundRobinController(candidates)
    return FirstFitController(candidates)


__all__ = ['FirstFitController', 'RoundRobinController', 'make_controller']
