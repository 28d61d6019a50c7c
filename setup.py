from setuptools import setup

setup(name='focustools',
      version='0.1.0',
      description='Assess the focus quality of microscope images',
      long_description='Apply a pretrained TensorFlow focus quality classifier to 16-bit microscope '
                       'images and visualize the focus class of each image region inside napari',

      keywords='image analysis microscopy focus quality tensorflow napari',
      license='BSD',
      packages=['focustools'],

      classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Science/Research',
        'Topic :: Scientific/Engineering',
        'License :: OSI Approved :: BSD License',
        'Programming Language :: Python :: 3',
      ],

      python_requires='>=3.9',
      install_requires=[
          'numpy',
          'scikit-image>=0.16.2',
          'matplotlib',
          'tensorflow>=2.4',
          'napari',
          'PyQt5',
          'tifffile',
          'tqdm',
      ],
      extras_require={
          'test': ['pytest'],
      },
      entry_points={
          'console_scripts': ['focustools=focustools.main:main'],
      },
      include_package_data=True,
      zip_safe=False)
