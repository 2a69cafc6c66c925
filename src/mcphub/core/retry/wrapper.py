import inspect
import logging
import time
from typing import (
    Any,
    Callable,
    Optional,
    Protocol,
    Type,
    TypeVar,
    cast,
    runtime_checkable,
)

from .strategy import ExponentialBackoff, RetryStrategy

logger = logging.getLogger(__name__)


@runtime_checkable
class Retryable(Protocol):
    def invoke(self, *args: Any, **kwargs: Any) -> Any: ...


class RetryWrapper(Retryable):
    """Re-invokes a target until it succeeds, a non-retryable error occurs,
    or ``max_retries`` attempts have been made."""

    def __init__(
        self,
        target: Retryable,
        strategy: Optional[RetryStrategy] = None,
        max_retries: int = 3,
        retry_on: Callable[[Exception], bool] = lambda _: True,
    ):
        self.target = target
        self.strategy = strategy or ExponentialBackoff()
        self.max_retries = max(1, max_retries)
        self.retry_on = retry_on

    def invoke(self, *args: Any, **kwargs: Any) -> Any:
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                return self.target.invoke(*args, **kwargs)
            except Exception as e:
                if not self.retry_on(e):
                    raise

                last_exception = e
                if attempt < self.max_retries - 1:
                    delay = self.strategy.get_delay(attempt, e) / 1000.0
                    logger.warning(
                        f"Attempt {attempt + 1}/{self.max_retries} failed: {e}. Retrying in {delay:.2f}s..."
                    )
                    time.sleep(delay)

        if last_exception:
            raise last_exception
        raise RuntimeError("Retry failed with no exception")

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self.invoke(*args, **kwargs)


class FunctionTarget(Retryable):
    """Adapts a plain callable to the Retryable protocol."""

    def __init__(self, func: Callable[..., Any]):
        self.func = func

    def invoke(self, *args: Any, **kwargs: Any) -> Any:
        return self.func(*args, **kwargs)


def retry_call(
    func: Callable[..., Any],
    *args: Any,
    strategy: Optional[RetryStrategy] = None,
    max_retries: int = 3,
    retry_on: Callable[[Exception], bool] = lambda _: True,
    **kwargs: Any,
) -> Any:
    """Call ``func`` once through a RetryWrapper."""
    wrapper = RetryWrapper(
        FunctionTarget(func),
        strategy=strategy,
        max_retries=max_retries,
        retry_on=retry_on,
    )
    return wrapper.invoke(*args, **kwargs)


T = TypeVar("T")


def create_retry_wrapper(
    inner: T,
    base_class: Type[T],
    *,
    retry_methods: set[str] | None = None,
    strategy: RetryStrategy | None = None,
    max_retries: int = 3,
    retry_on: Callable[[Exception], bool] = lambda _: True,
) -> T:
    """Build a proxy of ``base_class`` that retries ``retry_methods`` on ``inner``.

    Every other public attribute that ``base_class`` declares is forwarded to
    ``inner`` so the proxy is a drop-in replacement.
    """
    methods_to_implement = retry_methods or set()

    class GenericRetryWrapper(base_class):  # type: ignore
        def __init__(self) -> None:
            self._inner = inner
            self._retry_wrapper = RetryWrapper(
                target=_GenericRetryableTarget(inner),
                strategy=strategy or ExponentialBackoff(),
                max_retries=max_retries,
                retry_on=retry_on,
            )

        def __getattr__(self, name: str) -> Any:
            # Only reached for attributes base_class does not define
            return getattr(self._inner, name)

    for name in methods_to_implement:
        if not callable(getattr(inner, name, None)):
            continue

        def make_retry_method(method_name: str) -> Any:
            def _wrapped(self: Any, *args: Any, **kwargs: Any) -> Any:
                return self._retry_wrapper.invoke(
                    method=method_name, args=args, kwargs=kwargs
                )

            return _wrapped

        setattr(GenericRetryWrapper, name, make_retry_method(name))

    # Attributes that base_class defines would shadow __getattr__, so they
    # are forwarded explicitly.
    for name in dir(inner):
        if name.startswith("_") or name in methods_to_implement:
            continue
        if not hasattr(base_class, name):
            continue

        attr = inspect.getattr_static(type(inner), name, None)
        if isinstance(attr, property) or not callable(getattr(inner, name)):

            def make_prop(prop_name: str) -> Any:
                return property(fget=lambda self: getattr(self._inner, prop_name))

            setattr(GenericRetryWrapper, name, make_prop(name))
            continue

        def make_delegate(method_name: str) -> Any:
            def _delegate(self: Any, *args: Any, **kwargs: Any) -> Any:
                return getattr(self._inner, method_name)(*args, **kwargs)

            return _delegate

        setattr(GenericRetryWrapper, name, make_delegate(name))

    # The proxy satisfies every interface inner satisfies
    if hasattr(GenericRetryWrapper, "__abstractmethods__"):
        GenericRetryWrapper.__abstractmethods__ = frozenset()

    return cast(T, GenericRetryWrapper())


class _GenericRetryableTarget(Retryable):
    def __init__(self, inner: Any):
        self.inner = inner

    def invoke(self, *args: Any, **kwargs: Any) -> Any:
        method = kwargs.pop("method")
        method_args = kwargs.pop("args", ())
        method_kwargs = kwargs.pop("kwargs", {})
        return getattr(self.inner, method)(*method_args, **method_kwargs)
