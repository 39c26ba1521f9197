from setuptools import setup, find_packages

setup(name='rposix',
      version='0.0.1',
      description='A library for making socket calls remotely, on a device under test, and observing their exact results',
      classifiers=[
          "Programming Language :: Python :: 3",
          "License :: OSI Approved :: MIT License",
          "Operating System :: POSIX :: Linux",
      ],
      keywords='linux socket syscall testing',
      license='MIT',
      packages=find_packages(include=['rposix', 'rposix.*']),
      python_requires='>=3.11',
      install_requires=[
          'trio>=0.23',
          'cffi',
          'outcome',
      ],
      extras_require={
          'test': ['pytest'],
      },
)
