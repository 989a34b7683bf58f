import nox.sessions

PYTHON_VERSIONS = ['3.8', '3.9', '3.10', '3.11', '3.12']
MOTOR_VERSIONS = ['3.1.2', '3.3.2', '3.6.0']


nox.options.reuse_existing_virtualenvs = True
nox.options.sessions = [
    'tests',
    'tests_motor',
]


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.sessions.Session, motor=None):
    """ Run all tests """
    session.install('-e', '.[test]')

    # Specific package versions
    if motor:
        session.install(f'motor=={motor}')

    # Test
    session.run('pytest', 'tests/', '--cov=mongoqe')


@nox.session(python=PYTHON_VERSIONS[-1])
@nox.parametrize('motor', MOTOR_VERSIONS)
def tests_motor(session: nox.sessions.Session, motor):
    """ Test against a specific Motor version """
    tests(session, motor)
