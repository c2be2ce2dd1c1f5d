"""
Modeling layer for training and scoring.

Provides the estimator contract shared by every model family (GLM, GBM,
random forest, deep learning), the family registry and model persistence.
"""
