import datetime
import time

from asteval import Interpreter

def safe_eval(expr, globals_dict=None, locals_dict=None):
    """
    Safely evaluate an expression using 'asteval'.

    Used for the domain expressions in the model options, eg the
    scaffold.form.condition of a relation field:

        [('author', '=', author)] if author else []

    The variables of the expression come from globals_dict and locals_dict.
    """
    context = {}
    if globals_dict: context.update(globals_dict)
    if locals_dict: context.update(locals_dict)

    context['datetime'] = datetime
    context['time'] = time

    # We rely on asteval's safe defaults (no open, no import).
    aeval = Interpreter(usersyms=context, minimal=False)

    try:
        result = aeval.eval(expr, show_errors=False, raise_errors=True)
    except Exception as e:
        error_msg = [error.get_error() for error in aeval.error] if aeval.error else [str(e)]
        raise ValueError(f"Safe Eval Error on '{expr}': {error_msg}") from e

    return result
