from typing import Annotated, Any, NamedTuple, get_args, get_origin

_ANNOTATED_MARKER_MIN_ARGS = 2


class Inject(NamedTuple):
    """Mark a callable parameter to be resolved from a container by key.

    Attach ``Inject`` metadata to ``typing.Annotated``. Integrations such as the
    pytest plugin and the FastAPI helpers read it to look the key up.

    Examples:
        .. code-block:: python

            from typing import Annotated


            def test_sends_welcome_mail(mailer: Annotated[Mailer, Inject("mailer")]) -> None:
                mailer.send("hello")

    """

    key: Any


def extract_inject_marker(annotation: Any) -> Inject | None:
    """Return the ``Inject`` marker carried by an ``Annotated`` annotation, if any."""
    if get_origin(annotation) is not Annotated:
        return None
    annotation_args = get_args(annotation)
    if len(annotation_args) < _ANNOTATED_MARKER_MIN_ARGS:
        return None
    for item in annotation_args[1:]:
        if isinstance(item, Inject):
            return item
    return None


__all__ = ["Inject", "extract_inject_marker"]
