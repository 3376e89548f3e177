"""Application layer: the Notebook facade and its construction."""

from gokigen.app.factory import build_notebook
from gokigen.app.notebook import Notebook
from gokigen.app.paywall import PaywallCoordinator

__all__ = ["Notebook", "PaywallCoordinator", "build_notebook"]
