"""
Counter v1 - a logic module holding one number.

Deploy it, point a gateway at it, and call through the gateway:

    initialize()   - one-shot setup, value = 1
    getValue()     - current value
    setValue(n)    - replace value

State lives in the gateway, not here: every operation reaches it through
ctx.state.
"""

__logic__ = {
    'name': 'counter',
    'version': '1.0.0',
    'description': 'Single stored number',
}

# Storage layout. _gap keeps room for fields added by later versions.
__state__ = {
    'value': 0,
    'initialized': False,
    '_gap': [0] * 48,
}


def initialize(ctx):
    """Set value to 1. Can only run once per gateway."""
    if ctx.state.get('initialized'):
        ctx.revert({'error': 'AlreadyInitialized'})

    ctx.state.set('initialized', True)
    ctx.state.set('value', 1)

    if ctx.logger:
        ctx.logger.info('Counter initialized', caller=ctx.caller)


def getValue(ctx):
    return ctx.state.get('value')


def setValue(ctx, new_value):
    if not isinstance(new_value, int):
        ctx.revert({'error': 'NotAnInteger', 'value': repr(new_value)})
    ctx.state.set('value', new_value)
    return new_value
