"""Trend aggregation over recent entries."""

from gokigen.trends.aggregator import DEFAULT_WINDOW, summarize

__all__ = ["DEFAULT_WINDOW", "summarize"]
