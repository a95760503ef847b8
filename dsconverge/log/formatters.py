"""
Composable log observers for use with Twisted's legacy log module.
"""
import json
import time
from datetime import datetime
from functools import singledispatch

from twisted.python.failure import Failure


DEFAULT_SYSTEM = 'dsconverge'


class LoggingEncoder(json.JSONEncoder):
    """
    A JSONEncoder that falls back to ``repr`` for objects it does not know
    about, so that events carrying declarations, device info or failures are
    still logged instead of being dropped on a formatting error.
    """
    serializers = [(datetime, lambda obj: obj.isoformat()),
                   (Failure, str)]

    def default(self, obj):
        """
        Serialize obj using `serializers` above and fallback to repr
        """
        for _type, serializer in self.serializers:
            if isinstance(obj, _type):
                return serializer(obj)
        return repr(obj)


def JSONObserverWrapper(observer, **kwargs):
    """
    Create an observer that will format the eventDict as JSON using the
    supplied keyword arguments and delegate to `observer`.

    :param ILogObserver observer: The observer to delegate message delivery to.

    :rtype: :class:`ILogObserver`
    """
    def JSONObserver(eventDict):
        if 'message' in eventDict:
            eventDict['message'] = ''.join(eventDict['message'])
        observer({'message': (json.dumps(eventDict,
                                         cls=LoggingEncoder, **kwargs),)})

    return JSONObserver


def StreamObserverWrapper(stream, delimiter='\n', buffered=False):
    """
    Create a log observer that will write the message to the given stream.

    :param str or None delimiter: A delimiter for each message.
    :param bool buffered: True if output should be buffered, if False we will
        call `flush` on the `stream` after writing every message.

    :rtype: :class:`ILogObserver`
    """
    def StreamObserver(eventDict):
        stream.write(''.join(eventDict['message']))

        if delimiter is not None:
            stream.write(delimiter)

        if not buffered:
            stream.flush()

    return StreamObserver


def SystemFilterWrapper(observer):
    """
    Replace twisted's placeholder and connection-context ``system`` values
    with ours.

    :param ILogObserver observer: The log observer to delegate to after
        fixing system.

    :rtype: :class:`ILogObserver`
    """
    def SystemFilterObserver(eventDict):
        system = eventDict.get('system', '-')

        if system == '-':
            system = DEFAULT_SYSTEM
        elif ',' in system:
            eventDict['log_context'] = system
            system = DEFAULT_SYSTEM

        eventDict['system'] = system
        observer(eventDict)

    return SystemFilterObserver


def PEP3101FormattingWrapper(observer):
    """
    Format messages using PEP3101 format strings, with the event fields as
    the format arguments.

    :param ILogObserver observer: The log observer to delegate to after
        formatting message.

    :rtype: :class:`ILogObserver`
    """
    def PEP3101FormattingObserver(eventDict):
        if eventDict.get('why'):
            eventDict['why'] = eventDict['why'].format(**eventDict)

        if 'message' in eventDict:
            message = ' '.join(eventDict['message'])

            if message:
                try:
                    eventDict['message'] = (message.format(**eventDict),)
                except Exception:
                    failure = Failure()
                    eventDict['message_formatting_error'] = str(failure)
                    eventDict['message'] = (message,)

        observer(eventDict)

    return PEP3101FormattingObserver


ERROR_FIELDS = {"isError", "failure", "why"}

PRIMITIVE_FIELDS = {"time", "system", "id", "message"}


@singledispatch
def serialize_to_jsonable(obj):
    """
    Serialize any object to a JSONable form
    """
    return repr(obj)


class LogLevel(object):
    """ Syslog severity levels used in the ``level`` field """
    INFO = 6
    ERROR = 3


def ErrorFormattingWrapper(observer):
    """
    Return log observer that will format error if any and delegate it to
    given `observer`.

    For error events a message is built from "why" and the failure, and the
    traceback, exception type and serialized error details are added. The
    raw "isError", "why" and "failure" fields are removed. "level" is set
    unless already present.
    """

    def error_formatting_observer(event):

        message = ""

        if event.get("isError", False):
            level = LogLevel.ERROR

            if 'failure' in event:
                excp = event['failure'].value
                message = repr(excp)
                event['traceback'] = event['failure'].getTraceback()
                event['exception_type'] = excp.__class__.__name__
                details = serialize_to_jsonable(excp)
                if details != message:
                    event['error_details'] = details

            if 'why' in event and event['why']:
                message = '{0}: {1}'.format(event['why'], message)

        else:
            level = LogLevel.INFO

        event.update({
            "message": (''.join(event.get("message", '')) or message, ),
            "level": event.get("level", level)
        })
        for k in ERROR_FIELDS:
            event.pop(k, None)

        observer(event)

    return error_formatting_observer


def ObserverWrapper(observer, hostname, seconds=None):
    """
    Create a log observer that shapes events into the documents we ship and
    delegates to `observer`.

    :param str hostname: The hostname to be used.
    :param ILogObserver observer: The log observer to call with our
        formatted data.
    :param seconds: A 0-argument callable that returns a timestamp.

    :rtype: :class:`ILogObserver`
    """

    if seconds is None:  # pragma: no cover
        seconds = time.time

    def Observer(eventDict):

        log_params = {
            "@version": 1,
            "host": hostname,
            "@timestamp": datetime.fromtimestamp(
                eventDict.get("time", seconds())).isoformat(),
            "facility": eventDict.get("system", DEFAULT_SYSTEM),
            "message": eventDict["message"]
        }

        for key, value in eventDict.items():
            if key not in PRIMITIVE_FIELDS:
                log_params[key] = value

        observer(log_params)

    return Observer
