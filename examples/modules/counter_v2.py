"""
Counter v2 - counter v1 plus arithmetic.

Same storage layout as v1, so a gateway upgraded from v1 keeps its value.

    getValue()          - current value
    setValue(n)         - replace value
    getValuePlusOne()   - value + 1 (read-only)
    increment()         - value += 1, returns the new value
"""

__logic__ = {
    'name': 'counter',
    'version': '2.0.0',
    'description': 'Single stored number with arithmetic',
}

__state__ = {
    'value': 0,
    'initialized': False,
    '_gap': [0] * 48,
}


def initialize(ctx):
    if ctx.state.get('initialized'):
        ctx.revert({'error': 'AlreadyInitialized'})
    ctx.state.set('initialized', True)
    ctx.state.set('value', 1)


def getValue(ctx):
    return ctx.state.get('value')


def setValue(ctx, new_value):
    if not isinstance(new_value, int):
        ctx.revert({'error': 'NotAnInteger', 'value': repr(new_value)})
    ctx.state.set('value', new_value)
    return new_value


def getValuePlusOne(ctx):
    return ctx.state.get('value') + 1


def increment(ctx):
    value = ctx.state.get('value') + 1
    ctx.state.set('value', value)
    return value
