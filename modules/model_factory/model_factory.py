import inspect
from typing import Dict, Any, List
from sklearn.ensemble import (
    ExtraTreesClassifier,
    ExtraTreesRegressor,
    GradientBoostingClassifier,
    GradientBoostingRegressor,
    RandomForestClassifier,
    RandomForestRegressor,
)
from sklearn.linear_model import (
    ElasticNet,
    Lasso,
    LinearRegression,
    LogisticRegression,
    Ridge,
    RidgeClassifier,
    SGDClassifier,
    SGDRegressor,
)
from sklearn.neighbors import KNeighborsClassifier, KNeighborsRegressor
from sklearn.svm import SVC, SVR, LinearSVC, LinearSVR
from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor


class ModelFactory:
    """
    Factory for the scikit-learn estimators a search can wrap.
    Split into classifiers (stratified folds) and regressors (plain K-fold).
    """

    CLASSIFIERS = {
        # Linear
        'LogisticRegression': LogisticRegression,
        'RidgeClassifier': RidgeClassifier,
        'SGDClassifier': SGDClassifier,
        'LinearSVC': LinearSVC,

        # Kernel / Neighbors
        'SVC': SVC,
        'KNeighborsClassifier': KNeighborsClassifier,

        # Trees
        'DecisionTreeClassifier': DecisionTreeClassifier,
        'RandomForestClassifier': RandomForestClassifier,
        'ExtraTreesClassifier': ExtraTreesClassifier,
        'GradientBoostingClassifier': GradientBoostingClassifier,
    }

    REGRESSORS = {
        # Linear
        'LinearRegression': LinearRegression,
        'Ridge': Ridge,
        'Lasso': Lasso,
        'ElasticNet': ElasticNet,
        'SGDRegressor': SGDRegressor,
        'LinearSVR': LinearSVR,

        # Kernel / Neighbors
        'SVR': SVR,
        'KNeighborsRegressor': KNeighborsRegressor,

        # Trees
        'DecisionTreeRegressor': DecisionTreeRegressor,
        'RandomForestRegressor': RandomForestRegressor,
        'ExtraTreesRegressor': ExtraTreesRegressor,
        'GradientBoostingRegressor': GradientBoostingRegressor,
    }

    @classmethod
    def create(cls, model_name: str, params: Dict[str, Any] = None) -> Any:
        """
        Create and return an instantiated, unfitted estimator.
        Parameters the estimator does not accept are dropped.
        """
        if params is None:
            params = {}

        registry = {**cls.CLASSIFIERS, **cls.REGRESSORS}
        if model_name not in registry:
            raise ValueError(f"Unknown model name: {model_name}. Available: {cls.get_available_models()}")

        model_class = registry[model_name]
        return model_class(**cls._filter_params(model_class, params))

    @classmethod
    def get_available_models(cls) -> List[str]:
        """Return list of all supported model names."""
        return list(cls.CLASSIFIERS.keys()) + list(cls.REGRESSORS.keys())

    @classmethod
    def is_classifier(cls, model_name: str) -> bool:
        return model_name in cls.CLASSIFIERS

    @staticmethod
    def _filter_params(model_class, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Remove parameters from `params` that are not accepted by `model_class` constructor.
        """
        sig = inspect.signature(model_class.__init__)

        valid_keys = [
            p.name for p in sig.parameters.values()
            if p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY)
        ]

        has_kwargs = any(p.kind == p.VAR_KEYWORD for p in sig.parameters.values())
        if has_kwargs:
            return params

        return {k: v for k, v in params.items() if k in valid_keys}
