"""Batch image to WebP converter: conversion endpoint and batch orchestrator."""

__version__ = "1.0.0"
