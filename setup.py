from setuptools import setup
pname='lccutout'
setup(name=pname,
      version='0.1',
      description='distributed lightcone cutout pipeline',
      license='MIT',
      packages=['lccutout', 'lccutout.utils'],
      install_requires=['numpy', 'pyyaml'],
      extras_require={
        'mpi': ['mpi4py'],
        'test': ['pytest', 'scipy'],
      },
      entry_points={
        'console_scripts': ['lccutout=lccutout.cli:main'],
      },
      zip_safe=False)
