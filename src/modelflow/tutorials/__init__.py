"""
Worked analyses built from the library.

- urchins: OLS and Bayesian linear regression with an interaction term
- flights: late-arrival classification with date features
- housing: random forest tuned by stratified cross-validation
"""

from modelflow.tutorials.flights import run_flights
from modelflow.tutorials.housing import run_housing
from modelflow.tutorials.urchins import run_urchins

TUTORIALS = {
    "urchins": run_urchins,
    "flights": run_flights,
    "housing": run_housing,
}

__all__ = ["TUTORIALS", "run_flights", "run_housing", "run_urchins"]
