from ..exc import InvalidEnvelopeError


class EnvelopeHandlerBase:
    """ An implementation of a handler from MongoEnvelope

        Every subclass will handle a single field from the Query Envelope
    """

    #: Name of the Query Envelope section that this object is capable of handling
    envelope_section_name = None

    def __init__(self):
        """ Initialize the Query Envelope section handler.

        This method does *not* receive any input data just yet, with the purpose of having an
        object that can be extended with some interesting defaults right at init time.

        NOTE: Any arguments that have default values will be treated as handler settings!!
        They are plucked from the AdapterSettingsDict by name.
        """
        # Has the input() method been called already?
        # This may be important for handlers that depend on other handlers
        self.input_received = False

        #: The raw input value
        self.input_value = None

        #: MongoEnvelope bound to this object. It may remain uninitialized.
        self.envelope = None

    def with_envelope(self, envelope):
        """ Bind this object with a MongoEnvelope

            :type envelope: mongoqe.envelope.MongoEnvelope
            """
        self.envelope = envelope
        return self

    def input_prepare_envelope(self, envelope):
        """ Modify the Query Envelope before it is processed.

        Sometimes a handler would need to alter it: for instance, when it handles two keys at once.
        Here's its chance.

        This method is called before any input(), or validation, or anything.

        :param envelope: dict
        """
        return envelope

    def input(self, value):
        """ Get a section of the Query Envelope.

        The purpose of this method is to receive the input, validate it, and store as a public
        property so that external tools may export its value.

        :param value: the value of the Query Envelope field it's handling
        :type value: Any
        :rtype: EnvelopeHandlerBase
        :raises InvalidEnvelopeError
        """
        self.input_value = value  # no copying. Try not to modify it.

        # Set the flag
        self.input_received = True

        # Make sure that input() can only be used once
        self.input = self.__raise_input_not_reusable

        return self

    def is_input_empty(self):
        """ Test whether the input value was empty """
        return not self.input_value

    def __raise_input_not_reusable(self, *args, **kwargs):
        raise RuntimeError("You can't use the {}.input() method twice. "
                           "Make a new object!"
                           .format(self.__class__.__name__))

    def raise_invalid(self, message, *args, **kwargs):
        """ Raise an InvalidEnvelopeError prefixed with the section name """
        raise InvalidEnvelopeError('{}: {}'.format(self.envelope_section_name,
                                                   message.format(*args, **kwargs)))

    # These methods implement the logic of individual handlers
    # Note that not all methods are going to be implemented by subclasses!

    def compile_statement(self):
        """ Compile a native MongoDB statement: a selector, a projection, an update document, etc.

        :rtype: dict
        """
        raise NotImplementedError()

    def get_final_input_value(self):
        """ Get the final input of the handler """
        return self.input_value
